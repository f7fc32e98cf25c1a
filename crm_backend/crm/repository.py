"""Repository for contacts and their tasks, notes and activities."""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from crm_backend.core.store import Collection

LOGGER = logging.getLogger(__name__)

Record = dict[str, Any]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


class CRMRepositoryProtocol(Protocol):
    """Protocol describing record lookups needed by ownership checks."""

    def get_contact(self, contact_id: str) -> Record | None:
        """Return contact by id."""

    def get_task(self, task_id: str) -> Record | None:
        """Return task by id."""

    def get_note(self, note_id: str) -> Record | None:
        """Return note by id."""

    def get_activity(self, activity_id: str) -> Record | None:
        """Return activity by id."""


class CRMRepository:
    """Record-store repository for CRM entities."""

    def __init__(
        self,
        *,
        contacts: Collection,
        tasks: Collection,
        notes: Collection,
        activities: Collection,
    ) -> None:
        self._contacts = contacts
        self._tasks = tasks
        self._notes = notes
        self._activities = activities

    # contacts

    def get_contact(self, contact_id: str) -> Record | None:
        return self._contacts.find_one({"id": contact_id})

    def find_contact_by_email(self, user_id: str, email: str) -> Record | None:
        return self._contacts.find_one({"user_id": user_id, "email": email})

    def list_contacts(
        self,
        user_id: str,
        *,
        status: str | None = None,
        contact_type: str | None = None,
        search: str = "",
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Record], int]:
        """Return one page of a user's contacts, newest first, and the total."""
        query: dict[str, Any] = {"user_id": user_id}
        if status:
            query["status"] = status
        if contact_type:
            query["contact_type"] = contact_type
        if search.strip():
            pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
            query["$or"] = [
                {"name": pattern},
                {"email": pattern},
                {"phone": pattern},
            ]
        total = self._contacts.count(query)
        items = self._contacts.find(
            query, sort=("created_at", -1), skip=skip, limit=limit
        )
        return items, total

    def insert_contact(self, record: Record) -> Record:
        self._contacts.insert_one(record)
        return record

    def update_contact(self, contact_id: str, values: Record) -> Record | None:
        return self._contacts.update_one(
            {"id": contact_id}, {**values, "updated_at": now_iso()}
        )

    def delete_contact(self, contact_id: str) -> bool:
        """Delete a contact and everything attached to it."""
        self._tasks.delete_many({"contact_id": contact_id})
        self._notes.delete_many({"contact_id": contact_id})
        self._activities.delete_many({"contact_id": contact_id})
        return self._contacts.delete_one({"id": contact_id})

    def delete_contacts(self, user_id: str, contact_ids: list[str]) -> int:
        """Delete the listed contacts owned by ``user_id``; others are skipped."""
        owned = [
            row["id"]
            for row in self._contacts.find(
                {"user_id": user_id, "id": {"$in": contact_ids}}
            )
        ]
        if not owned:
            return 0
        self._tasks.delete_many({"contact_id": {"$in": owned}})
        self._notes.delete_many({"contact_id": {"$in": owned}})
        self._activities.delete_many({"contact_id": {"$in": owned}})
        return self._contacts.delete_many({"id": {"$in": owned}})

    # tasks

    def get_task(self, task_id: str) -> Record | None:
        return self._tasks.find_one({"id": task_id})

    def list_tasks_for_contact(self, contact_id: str, *, limit: int = 20) -> list[Record]:
        return self._tasks.find(
            {"contact_id": contact_id}, sort=("created_at", -1), limit=limit
        )

    def list_tasks_for_user(self, user_id: str, *, status: str | None = None) -> list[Record]:
        query: dict[str, Any] = {"user_id": user_id}
        if status:
            query["status"] = status
        return self._tasks.find(query, sort=("created_at", -1))

    def insert_task(self, record: Record) -> Record:
        self._tasks.insert_one(record)
        return record

    def update_task(self, task_id: str, values: Record) -> Record | None:
        return self._tasks.update_one({"id": task_id}, {**values, "updated_at": now_iso()})

    def delete_task(self, task_id: str) -> bool:
        return self._tasks.delete_one({"id": task_id})

    # notes

    def get_note(self, note_id: str) -> Record | None:
        return self._notes.find_one({"id": note_id})

    def list_notes_for_contact(self, contact_id: str, *, limit: int = 20) -> list[Record]:
        return self._notes.find(
            {"contact_id": contact_id}, sort=("created_at", -1), limit=limit
        )

    def insert_note(self, record: Record) -> Record:
        self._notes.insert_one(record)
        return record

    def update_note(self, note_id: str, values: Record) -> Record | None:
        return self._notes.update_one({"id": note_id}, {**values, "updated_at": now_iso()})

    def delete_note(self, note_id: str) -> bool:
        return self._notes.delete_one({"id": note_id})

    # activities

    def get_activity(self, activity_id: str) -> Record | None:
        return self._activities.find_one({"id": activity_id})

    def list_activities_for_contact(
        self, contact_id: str, *, limit: int = 50
    ) -> list[Record]:
        return self._activities.find(
            {"contact_id": contact_id}, sort=("created_at", -1), limit=limit
        )

    def insert_activity(self, record: Record) -> Record:
        self._activities.insert_one(record)
        return record

    def delete_activity(self, activity_id: str) -> bool:
        return self._activities.delete_one({"id": activity_id})
