"""Form and submission storage."""

import re
import math
import sqlite3
import logging
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple, Union

import pandas as pd

from config.settings import Settings
from schemas.forms import FormDraft, FormField, Submission, SubmissionInfo
from .errors import PersistenceUnavailable, FormNotFound, SubmissionValidationError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
TEL_PATTERN = re.compile(r"^[\d\-\+\(\)\s]+$")


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(str(value).strip())
    except ValueError:
        return False
    return True


def validate_submission_data(fields: List[FormField], data: Dict[str, Any]) -> List[Dict[str, str]]:
    """
    Check submitted values against the form's fields.

    Required fields must be non-empty; email, number and tel fields are
    format-checked when a value is present.

    Returns:
        List of {field, message} errors (empty when valid)
    """
    errors = []
    for field in fields:
        value = data.get(field.id)
        empty = value is None or value == "" or value == [] or (isinstance(value, str) and not value.strip())
        label = field.label or field.id

        if field.required and empty:
            errors.append({"field": field.id, "message": f"{label} is required"})
            continue
        if empty:
            continue

        if field.type == "email" and not EMAIL_PATTERN.search(str(value)):
            errors.append({"field": field.id, "message": f"{label} must be a valid email"})
        elif field.type == "number" and not _is_number(value):
            errors.append({"field": field.id, "message": f"{label} must be a number"})
        elif field.type == "tel" and not TEL_PATTERN.match(str(value)):
            errors.append({"field": field.id, "message": f"{label} must be a valid phone number"})
    return errors


def _pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "current": page,
        "total": total,
        "page_size": limit,
        "pages": math.ceil(total / limit) if limit else 0,
    }


class FormStore(ABC):
    """
    Form and submission store.

    Subclasses provide the storage primitives; ids, timestamps, soft
    deletion, counters and submission validation live here.
    """

    name = "base"

    # Storage primitives

    @abstractmethod
    def _put_form(self, form: FormDraft):
        pass

    @abstractmethod
    def _load_form(self, form_id: str) -> Optional[FormDraft]:
        pass

    @abstractmethod
    def _forms_by_user(self, user_id: str) -> List[FormDraft]:
        pass

    @abstractmethod
    def _put_submission(self, submission: Submission):
        pass

    @abstractmethod
    def _submissions_for(self, form_id: str) -> List[Submission]:
        pass

    @abstractmethod
    def _delete_submissions(self, form_id: str) -> int:
        pass

    # Operations

    def save_form(self, form: FormDraft, user_id: str = "anonymous") -> FormDraft:
        """
        Store a new form.

        Missing field ids are generated; the form gets a fresh id.

        Returns:
            The stored form
        """
        form = form.model_copy(deep=True)
        now = datetime.now()
        form.form_id = uuid.uuid4().hex[:24]
        form.title = form.title.strip()
        form.description = (form.description or "").strip()
        form.created_by = form.created_by or user_id
        form.is_active = True
        form.created_at = now
        form.updated_at = now
        for field in form.fields:
            if not field.id:
                field.id = f"field_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
            if not field.name:
                field.name = field.id

        self._put_form(form)
        logger.info(f"Form saved: {form.form_id} - {form.title}")
        return form

    def get_form(self, form_id: str, count_view: bool = False) -> FormDraft:
        """
        Load an active form.

        Args:
            form_id: Form ID
            count_view: Increment the view counter

        Raises:
            FormNotFound: If the form does not exist or was deleted
        """
        form = self._load_form(form_id)
        if form is None or not form.is_active:
            raise FormNotFound(form_id)
        if count_view:
            form.analytics.views += 1
            self._put_form(form)
        return form

    def update_form(self, form_id: str, updates: Dict[str, Any]) -> FormDraft:
        """
        Merge updates into a stored form.

        Raises:
            FormNotFound: If the form does not exist or was deleted
        """
        form = self.get_form(form_id)
        protected = {"form_id", "created_at", "created_by", "analytics"}
        data = form.model_dump()
        data.update({k: v for k, v in updates.items() if k not in protected})
        updated = FormDraft.model_validate(data)
        updated.updated_at = datetime.now()
        self._put_form(updated)
        logger.info(f"Form updated: {form_id}")
        return updated

    def delete_form(self, form_id: str) -> int:
        """
        Soft-delete a form and remove its submissions.

        Returns:
            Number of submissions removed

        Raises:
            FormNotFound: If the form does not exist or was already deleted
        """
        form = self.get_form(form_id)
        form.is_active = False
        form.updated_at = datetime.now()
        self._put_form(form)
        removed = self._delete_submissions(form_id)
        logger.info(f"Form deleted: {form_id} - {form.title} ({removed} submissions removed)")
        return removed

    def list_user_forms(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        sort_order: str = "desc"
    ) -> Tuple[List[FormDraft], Dict[str, int]]:
        """Active forms of a user, newest first by default, with pagination info."""
        page, limit = max(page, 1), max(limit, 1)
        forms = [f for f in self._forms_by_user(user_id) if f.is_active]
        forms.sort(key=lambda f: f.created_at or datetime.min, reverse=sort_order == "desc")
        start = (page - 1) * limit
        return forms[start:start + limit], _pagination(page, limit, len(forms))

    def add_submission(
        self,
        form_id: str,
        data: Dict[str, Any],
        info: Optional[SubmissionInfo] = None
    ) -> Submission:
        """
        Validate and store a submission.

        Raises:
            FormNotFound: If the form does not exist or was deleted
            SubmissionValidationError: If the data fails validation
        """
        form = self.get_form(form_id)
        errors = validate_submission_data(form.fields, data or {})
        if errors:
            raise SubmissionValidationError(errors)

        submission = Submission(
            submission_id=uuid.uuid4().hex,
            form_id=form_id,
            data=data,
            submission_info=info or SubmissionInfo(),
        )
        self._put_submission(submission)

        form.analytics.submissions += 1
        self._put_form(form)
        logger.info(f"Form submission saved: {submission.submission_id} for form {form_id}")
        return submission

    def list_submissions(
        self,
        form_id: str,
        page: int = 1,
        limit: int = 50
    ) -> Tuple[List[Submission], Dict[str, int]]:
        """Submissions of a form, newest first, with pagination info."""
        page, limit = max(page, 1), max(limit, 1)
        submissions = sorted(self._submissions_for(form_id), key=lambda s: s.created_at, reverse=True)
        start = (page - 1) * limit
        return submissions[start:start + limit], _pagination(page, limit, len(submissions))

    def all_submissions(self, form_id: str) -> List[Submission]:
        return sorted(self._submissions_for(form_id), key=lambda s: s.created_at)

    def export_form(self, form_id: str, export_format: str = "json") -> Union[Dict[str, Any], str]:
        """
        Export a form.

        Args:
            form_id: Form ID
            export_format: "json" (form configuration) or "csv" (submissions table)

        Raises:
            FormNotFound: If the form does not exist or was deleted
            ValueError: If the format is not supported
        """
        form = self.get_form(form_id)

        if export_format == "json":
            return {
                "id": form.form_id,
                "title": form.title,
                "description": form.description,
                "fields": [f.model_dump(mode="json") for f in form.fields],
                "settings": form.settings,
                "created_at": form.created_at.isoformat() if form.created_at else None,
                "exported_at": datetime.now().isoformat(),
            }

        if export_format == "csv":
            field_ids = [f.id for f in form.fields]
            rows = [
                {
                    "submission_id": s.submission_id,
                    "submitted_at": s.created_at.isoformat(),
                    **{fid: s.data.get(fid) for fid in field_ids},
                }
                for s in self.all_submissions(form_id)
            ]
            df = pd.DataFrame(rows, columns=["submission_id", "submitted_at", *field_ids])
            df = df.rename(columns={f.id: f.label or f.id for f in form.fields})
            return df.to_csv(index=False)

        raise ValueError(f"Unsupported export format: {export_format}")

    def stats(self) -> Dict[str, Any]:
        return {"backend": self.name}


class InMemoryFormStore(FormStore):
    """Process-local form store."""

    name = "memory"

    def __init__(self):
        self._forms: Dict[str, FormDraft] = {}
        self._submissions: Dict[str, Submission] = {}

    def _put_form(self, form: FormDraft):
        self._forms[form.form_id] = form.model_copy(deep=True)

    def _load_form(self, form_id: str) -> Optional[FormDraft]:
        form = self._forms.get(form_id)
        return form.model_copy(deep=True) if form else None

    def _forms_by_user(self, user_id: str) -> List[FormDraft]:
        return [f.model_copy(deep=True) for f in self._forms.values() if f.created_by == user_id]

    def _put_submission(self, submission: Submission):
        self._submissions[submission.submission_id] = submission.model_copy(deep=True)

    def _submissions_for(self, form_id: str) -> List[Submission]:
        return [s.model_copy(deep=True) for s in self._submissions.values() if s.form_id == form_id]

    def _delete_submissions(self, form_id: str) -> int:
        doomed = [sid for sid, s in self._submissions.items() if s.form_id == form_id]
        for sid in doomed:
            del self._submissions[sid]
        return len(doomed)

    def stats(self) -> Dict[str, Any]:
        return {
            "backend": self.name,
            "total_forms": sum(1 for f in self._forms.values() if f.is_active),
            "total_submissions": len(self._submissions),
        }


class SQLiteFormStore(FormStore):
    """SQLite-based form store."""

    name = "sqlite"

    def __init__(self, db_path: str = "data/formagent.db"):
        """
        Initialize SQLite form store.

        Args:
            db_path: Path to SQLite database file

        Raises:
            PersistenceUnavailable: If the database cannot be created
        """
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot create {self.db_path.parent}: {e}") from e
        self._init_db()

    @contextmanager
    def _connection(self):
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            raise PersistenceUnavailable(str(e)) from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceUnavailable(str(e)) from e
        finally:
            conn.close()

    def _init_db(self):
        with self._connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS forms (
                    form_id TEXT PRIMARY KEY,
                    created_by TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP,
                    document TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS submissions (
                    submission_id TEXT PRIMARY KEY,
                    form_id TEXT NOT NULL,
                    created_at TIMESTAMP,
                    document TEXT NOT NULL,
                    FOREIGN KEY (form_id) REFERENCES forms(form_id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_forms_user ON forms(created_by)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_submissions_form ON submissions(form_id)")

    def _put_form(self, form: FormDraft):
        with self._connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO forms (form_id, created_by, is_active, created_at, updated_at, document)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    form.form_id,
                    form.created_by,
                    int(form.is_active),
                    form.created_at.isoformat() if form.created_at else None,
                    form.updated_at.isoformat() if form.updated_at else None,
                    form.model_dump_json(),
                )
            )

    def _load_form(self, form_id: str) -> Optional[FormDraft]:
        with self._connection() as conn:
            row = conn.execute("SELECT document FROM forms WHERE form_id = ?", (form_id,)).fetchone()
        return FormDraft.model_validate_json(row["document"]) if row else None

    def _forms_by_user(self, user_id: str) -> List[FormDraft]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT document FROM forms WHERE created_by = ? AND is_active = 1", (user_id,)
            ).fetchall()
        return [FormDraft.model_validate_json(row["document"]) for row in rows]

    def _put_submission(self, submission: Submission):
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO submissions (submission_id, form_id, created_at, document) VALUES (?, ?, ?, ?)",
                (
                    submission.submission_id,
                    submission.form_id,
                    submission.created_at.isoformat(),
                    submission.model_dump_json(),
                )
            )

    def _submissions_for(self, form_id: str) -> List[Submission]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT document FROM submissions WHERE form_id = ?", (form_id,)
            ).fetchall()
        return [Submission.model_validate_json(row["document"]) for row in rows]

    def _delete_submissions(self, form_id: str) -> int:
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM submissions WHERE form_id = ?", (form_id,))
            return cursor.rowcount

    def stats(self) -> Dict[str, Any]:
        with self._connection() as conn:
            forms = conn.execute("SELECT COUNT(*) AS n FROM forms WHERE is_active = 1").fetchone()
            submissions = conn.execute("SELECT COUNT(*) AS n FROM submissions").fetchone()
        return {
            "backend": self.name,
            "total_forms": forms["n"],
            "total_submissions": submissions["n"],
        }


def create_form_store(settings: Settings) -> FormStore:
    """SQLite form store, or an in-memory one when memory is disabled or SQLite cannot start."""
    if not settings.memory_enabled:
        return InMemoryFormStore()
    try:
        return SQLiteFormStore(db_path=settings.db_path)
    except PersistenceUnavailable as e:
        logger.error(f"Failed to open form database, using in-memory forms: {e}")
        return InMemoryFormStore()
