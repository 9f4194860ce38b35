"""Tests for Personality Profile."""

from agents.personality import PersonalityProfile
from schemas.context import UserType


class TestPersonalityProfile:
    """Test persona greetings and guidelines."""

    def setup_method(self):
        """Set up test fixtures."""
        self.personality = PersonalityProfile()

    def test_name_and_language(self):
        """Test persona basics are read from the YAML file."""
        assert self.personality.name == "FormAgent AI"
        assert self.personality.language == "Vietnamese"

    def test_greeting_for_each_user_type(self):
        """Test greetings carry the user-type specific message and tips."""
        expert = self.personality.contextual_greeting(UserType.EXPERT)
        first_time = self.personality.contextual_greeting(UserType.FIRST_TIME)

        assert expert.contextual_message.startswith("Chào expert")
        assert "Advanced validation rules" in expert.tips
        assert first_time.contextual_message.startswith("Chào bạn mới")
        assert first_time.greeting in self.personality.config["greeting"]["messages"]

    def test_long_conversations_get_shorter_answers(self):
        """Test max_length drops after ten messages of history."""
        short = self.personality.enforce_guidelines(UserType.RETURNING, history_length=3)
        long = self.personality.enforce_guidelines(UserType.RETURNING, history_length=11)

        assert short.max_length == 400
        assert long.max_length == 200
        assert short.should_use_emojis
        assert short.response_style["message"].startswith("Chào bạn!")

    def test_form_type_names(self):
        """Test form type display names."""
        names = self.personality.form_type_names()

        assert names["survey"] == "Khảo Sát"
        assert "application" in names

    def test_minimal_config(self):
        """Test an empty config falls back to built-in defaults."""
        personality = PersonalityProfile(config={})

        greeting = personality.contextual_greeting(UserType.EXPERT)

        assert personality.name == "FormAgent AI"
        assert greeting.greeting == "Xin chào! Tôi là FormAgent AI"
        assert greeting.tips == []
        assert personality.help_messages() == []
