"""Per-user ownership checks for path-addressed CRM resources."""

from __future__ import annotations

import logging
from enum import StrEnum

from crm_backend.api.errors import ApiError, ApiErrorCode
from crm_backend.auth.errors import AccessDenied
from crm_backend.auth.models import IdentityContext
from crm_backend.crm.repository import CRMRepositoryProtocol, Record

LOGGER = logging.getLogger(__name__)


class ResourceType(StrEnum):
    CONTACT = "contact"
    TASK = "task"
    NOTE = "note"
    ACTIVITY = "activity"


class Decision(StrEnum):
    ALLOWED = "ALLOWED"
    DENIED = "DENIED"
    NOT_FOUND = "NOT_FOUND"


NOT_FOUND_CODES = {
    ResourceType.CONTACT: ApiErrorCode.CONTACT_NOT_FOUND,
    ResourceType.TASK: ApiErrorCode.TASK_NOT_FOUND,
    ResourceType.NOTE: ApiErrorCode.NOTE_NOT_FOUND,
    ResourceType.ACTIVITY: ApiErrorCode.ACTIVITY_NOT_FOUND,
}


class OwnershipGuard:
    """Decide whether an identity may act on a contact, task, note or activity.

    A contact is owned through its ``user_id``. Tasks and notes are owned when
    their own ``user_id`` matches or their parent contact is owned. Activities
    carry no owner and are owned through their contact. Any other resource
    type is denied.
    """

    def __init__(
        self, repo: CRMRepositoryProtocol, *, hide_foreign_resources: bool = False
    ) -> None:
        self._repo = repo
        self._hide_foreign = hide_foreign_resources

    def authorize(
        self, identity: IdentityContext, resource_type: str, resource_id: str
    ) -> Decision:
        try:
            kind = ResourceType(resource_type)
        except ValueError:
            LOGGER.warning(
                "Ownership check for unknown resource type denied",
                extra={"resource_type": resource_type, "resource_id": resource_id},
            )
            return Decision.DENIED

        record = self._lookup(kind, resource_id)
        if record is None:
            return Decision.NOT_FOUND

        if kind is ResourceType.CONTACT:
            owned = record.get("user_id") == identity.id
        elif kind is ResourceType.ACTIVITY:
            owned = self._owns_contact(identity, record.get("contact_id"))
        else:
            owned = record.get("user_id") == identity.id or self._owns_contact(
                identity, record.get("contact_id")
            )

        if not owned:
            LOGGER.warning(
                "Ownership check denied",
                extra={
                    "user_id": identity.id,
                    "resource_type": str(kind),
                    "resource_id": resource_id,
                },
            )
            return Decision.DENIED
        return Decision.ALLOWED

    def enforce(
        self, identity: IdentityContext, resource_type: str, resource_id: str
    ) -> None:
        """Raise unless ``identity`` owns the resource."""
        decision = self.authorize(identity, resource_type, resource_id)
        if decision is Decision.ALLOWED:
            return
        if decision is Decision.DENIED and not (
            self._hide_foreign and resource_type in NOT_FOUND_CODES
        ):
            raise AccessDenied()
        code = NOT_FOUND_CODES.get(resource_type, ApiErrorCode.CONTACT_NOT_FOUND)
        raise ApiError(
            status_code=404,
            error_code=code,
            message=f"{resource_type.capitalize()} not found",
        )

    def _lookup(self, kind: ResourceType, resource_id: str) -> Record | None:
        if kind is ResourceType.CONTACT:
            return self._repo.get_contact(resource_id)
        if kind is ResourceType.TASK:
            return self._repo.get_task(resource_id)
        if kind is ResourceType.NOTE:
            return self._repo.get_note(resource_id)
        return self._repo.get_activity(resource_id)

    def _owns_contact(self, identity: IdentityContext, contact_id: object) -> bool:
        if not contact_id:
            return False
        contact = self._repo.get_contact(str(contact_id))
        return contact is not None and contact.get("user_id") == identity.id
