"""Persistence errors."""


class PersistenceUnavailable(Exception):
    """Persistent storage cannot be reached or written."""


class UniquenessConflict(Exception):
    """A record with the same unique key already exists."""

    def __init__(self, key: str):
        super().__init__(f"Duplicate key: {key}")
        self.key = key


class FormNotFound(Exception):
    """No active form with the given id."""

    def __init__(self, form_id: str):
        super().__init__(f"Form not found: {form_id}")
        self.form_id = form_id


class SubmissionValidationError(ValueError):
    """Submitted data does not satisfy the form's fields."""

    def __init__(self, errors: list):
        super().__init__("Validation failed")
        self.errors = errors
