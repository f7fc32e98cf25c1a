"""Business logic for contact, task, note and activity endpoints."""

from __future__ import annotations

import logging
import math
from typing import Any

from crm_backend.api.contracts import PaginationResponse
from crm_backend.api.errors import ApiError, ApiErrorCode
from crm_backend.auth.models import IdentityContext
from crm_backend.auth.ownership import NOT_FOUND_CODES, OwnershipGuard, ResourceType
from crm_backend.crm.models import (
    Activity,
    ActivityCreateRequest,
    Contact,
    ContactCreateRequest,
    ContactDetailResponse,
    ContactListResponse,
    ContactUpdateRequest,
    Note,
    NoteCreateRequest,
    NoteUpdateRequest,
    Task,
    TaskCreateRequest,
    TaskUpdateRequest,
)
from crm_backend.crm.repository import CRMRepository, new_id, now_iso

LOGGER = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000


def _not_found(kind: ResourceType) -> ApiError:
    return ApiError(
        status_code=404,
        error_code=NOT_FOUND_CODES[kind],
        message=f"{kind.capitalize()} not found",
    )


class CRMService:
    """Application service for owner-scoped CRM operations."""

    def __init__(self, *, repo: CRMRepository, guard: OwnershipGuard) -> None:
        self._repo = repo
        self._guard = guard

    # contacts

    def list_contacts(
        self,
        identity: IdentityContext,
        *,
        status: str | None = None,
        contact_type: str | None = None,
        search: str = "",
        page: int = 1,
        limit: int = 100,
    ) -> ContactListResponse:
        page = max(1, page)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        items, total = self._repo.list_contacts(
            identity.id,
            status=status,
            contact_type=contact_type,
            search=search,
            skip=(page - 1) * limit,
            limit=limit,
        )
        return ContactListResponse(
            contacts=[Contact.model_validate(item) for item in items],
            pagination=PaginationResponse(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit) if total else 0,
            ),
        )

    def get_contact(
        self, identity: IdentityContext, contact_id: str
    ) -> ContactDetailResponse:
        self._guard.enforce(identity, ResourceType.CONTACT, contact_id)
        contact = self._repo.get_contact(contact_id)
        if contact is None:
            raise _not_found(ResourceType.CONTACT)
        return ContactDetailResponse(
            **contact,
            tasks=self._repo.list_tasks_for_contact(contact_id),
            notes=self._repo.list_notes_for_contact(contact_id),
            activities=self._repo.list_activities_for_contact(contact_id),
        )

    def _assert_email_free(
        self, user_id: str, email: str | None, *, contact_id: str = ""
    ) -> None:
        if not email:
            return
        existing = self._repo.find_contact_by_email(user_id, email)
        if existing is not None and existing.get("id") != contact_id:
            raise ApiError(
                status_code=409,
                error_code=ApiErrorCode.EMAIL_EXISTS,
                message="A contact with this email already exists",
            )

    def _build_contact(self, user_id: str, req: ContactCreateRequest) -> dict[str, Any]:
        now = now_iso()
        payload = req.model_dump(mode="json")
        if payload.get("email"):
            payload["email"] = str(payload["email"]).lower()
        return Contact(
            id=new_id(),
            user_id=user_id,
            created_at=now,
            updated_at=now,
            **payload,
        ).model_dump(mode="json")

    def create_contact(
        self, identity: IdentityContext, req: ContactCreateRequest
    ) -> Contact:
        record = self._build_contact(identity.id, req)
        self._assert_email_free(identity.id, record.get("email"))
        self._repo.insert_contact(record)
        LOGGER.info(
            "Contact created",
            extra={"user_id": identity.id, "resource_id": record["id"]},
        )
        return Contact.model_validate(record)

    def update_contact(
        self, identity: IdentityContext, contact_id: str, req: ContactUpdateRequest
    ) -> Contact:
        self._guard.enforce(identity, ResourceType.CONTACT, contact_id)
        changes = req.model_dump(mode="json", exclude_unset=True)
        if changes.get("email"):
            changes["email"] = str(changes["email"]).lower()
            self._assert_email_free(identity.id, changes["email"], contact_id=contact_id)
        updated = self._repo.update_contact(contact_id, changes)
        if updated is None:
            raise _not_found(ResourceType.CONTACT)
        return Contact.model_validate(updated)

    def delete_contact(self, identity: IdentityContext, contact_id: str) -> None:
        self._guard.enforce(identity, ResourceType.CONTACT, contact_id)
        self._repo.delete_contact(contact_id)
        LOGGER.info(
            "Contact deleted",
            extra={"user_id": identity.id, "resource_id": contact_id},
        )

    def bulk_delete_contacts(
        self, identity: IdentityContext, contact_ids: list[str]
    ) -> int:
        deleted = self._repo.delete_contacts(identity.id, contact_ids)
        LOGGER.info(
            "Bulk contact delete",
            extra={"user_id": identity.id, "removed": deleted},
        )
        return deleted

    def bulk_import_contacts(
        self, identity: IdentityContext, contacts: list[ContactCreateRequest]
    ) -> tuple[int, int]:
        """Create contacts, skipping emails this user already has."""
        imported = 0
        skipped = 0
        seen: set[str] = set()
        for req in contacts:
            record = self._build_contact(identity.id, req)
            email = record.get("email")
            if email and (
                email in seen
                or self._repo.find_contact_by_email(identity.id, email) is not None
            ):
                skipped += 1
                continue
            if email:
                seen.add(email)
            self._repo.insert_contact(record)
            imported += 1
        LOGGER.info(
            "Bulk contact import: imported=%s skipped=%s",
            imported,
            skipped,
            extra={"user_id": identity.id},
        )
        return imported, skipped

    # nested resources

    def _enforce_child(
        self,
        identity: IdentityContext,
        kind: ResourceType,
        child_id: str,
        contact_id: str | None,
    ) -> None:
        """Check ownership of a child record and, when nested, its parent link."""
        if contact_id is not None:
            self._guard.enforce(identity, ResourceType.CONTACT, contact_id)
        self._guard.enforce(identity, kind, child_id)
        if contact_id is None:
            return
        lookup = {
            ResourceType.TASK: self._repo.get_task,
            ResourceType.NOTE: self._repo.get_note,
            ResourceType.ACTIVITY: self._repo.get_activity,
        }[kind]
        record = lookup(child_id)
        if record is None or record.get("contact_id") != contact_id:
            raise _not_found(kind)

    # tasks

    def list_tasks(
        self, identity: IdentityContext, *, status: str | None = None
    ) -> list[Task]:
        return [
            Task.model_validate(item)
            for item in self._repo.list_tasks_for_user(identity.id, status=status)
        ]

    def create_task(
        self, identity: IdentityContext, contact_id: str, req: TaskCreateRequest
    ) -> Task:
        self._guard.enforce(identity, ResourceType.CONTACT, contact_id)
        now = now_iso()
        task = Task(
            id=new_id(),
            user_id=identity.id,
            contact_id=contact_id,
            created_at=now,
            updated_at=now,
            **req.model_dump(mode="json"),
        )
        self._repo.insert_task(task.model_dump(mode="json"))
        return task

    def update_task(
        self,
        identity: IdentityContext,
        task_id: str,
        req: TaskUpdateRequest,
        *,
        contact_id: str | None = None,
    ) -> Task:
        self._enforce_child(identity, ResourceType.TASK, task_id, contact_id)
        updated = self._repo.update_task(
            task_id, req.model_dump(mode="json", exclude_unset=True)
        )
        if updated is None:
            raise _not_found(ResourceType.TASK)
        return Task.model_validate(updated)

    def delete_task(
        self, identity: IdentityContext, task_id: str, *, contact_id: str | None = None
    ) -> None:
        self._enforce_child(identity, ResourceType.TASK, task_id, contact_id)
        self._repo.delete_task(task_id)

    # notes

    def create_note(
        self, identity: IdentityContext, contact_id: str, req: NoteCreateRequest
    ) -> Note:
        self._guard.enforce(identity, ResourceType.CONTACT, contact_id)
        now = now_iso()
        note = Note(
            id=new_id(),
            contact_id=contact_id,
            user_id=identity.id,
            created_at=now,
            updated_at=now,
            **req.model_dump(mode="json"),
        )
        self._repo.insert_note(note.model_dump(mode="json"))
        return note

    def update_note(
        self,
        identity: IdentityContext,
        note_id: str,
        req: NoteUpdateRequest,
        *,
        contact_id: str | None = None,
    ) -> Note:
        self._enforce_child(identity, ResourceType.NOTE, note_id, contact_id)
        updated = self._repo.update_note(
            note_id, req.model_dump(mode="json", exclude_unset=True)
        )
        if updated is None:
            raise _not_found(ResourceType.NOTE)
        return Note.model_validate(updated)

    def delete_note(
        self, identity: IdentityContext, note_id: str, *, contact_id: str | None = None
    ) -> None:
        self._enforce_child(identity, ResourceType.NOTE, note_id, contact_id)
        self._repo.delete_note(note_id)

    # activities

    def create_activity(
        self, identity: IdentityContext, contact_id: str, req: ActivityCreateRequest
    ) -> Activity:
        self._guard.enforce(identity, ResourceType.CONTACT, contact_id)
        activity = Activity(
            id=new_id(),
            contact_id=contact_id,
            created_at=now_iso(),
            **req.model_dump(mode="json"),
        )
        self._repo.insert_activity(activity.model_dump(mode="json"))
        return activity

    def delete_activity(
        self, identity: IdentityContext, contact_id: str, activity_id: str
    ) -> None:
        self._enforce_child(identity, ResourceType.ACTIVITY, activity_id, contact_id)
        self._repo.delete_activity(activity_id)
