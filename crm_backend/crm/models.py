"""Pydantic models for contacts, tasks, notes and activities."""

from __future__ import annotations

from enum import StrEnum

from pydantic import EmailStr, Field, field_validator

from crm_backend.api.contracts import CamelModel, PaginationResponse


class ContactType(StrEnum):
    BUYER = "BUYER"
    SELLER = "SELLER"
    PAST_CLIENT = "PAST_CLIENT"
    LEAD = "LEAD"


class ContactStatus(StrEnum):
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    QUALIFIED = "QUALIFIED"
    PROPOSAL = "PROPOSAL"
    NEGOTIATION = "NEGOTIATION"
    CLOSED_WON = "CLOSED_WON"
    CLOSED_LOST = "CLOSED_LOST"


class TaskPriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ActivityType(StrEnum):
    CALL = "CALL"
    EMAIL = "EMAIL"
    MEETING = "MEETING"
    NOTE = "NOTE"
    WHATSAPP = "WHATSAPP"


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _required_text(value: str | None, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{label} is required")
    return value


def _not_null(value: object) -> object:
    if value is None:
        raise ValueError("Field cannot be null")
    return value


class Contact(CamelModel):
    """Persisted contact record."""

    id: str
    user_id: str
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    suburb: str | None = None
    contact_type: ContactType = ContactType.LEAD
    lead_source: str | None = None
    status: ContactStatus = ContactStatus.NEW
    created_at: str
    updated_at: str


class Task(CamelModel):
    """Persisted task record."""

    id: str
    user_id: str
    contact_id: str
    title: str
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: str | None = None
    created_at: str
    updated_at: str


class Note(CamelModel):
    """Persisted note record."""

    id: str
    contact_id: str
    user_id: str | None = None
    title: str | None = None
    content: str
    created_at: str
    updated_at: str


class Activity(CamelModel):
    """Persisted activity log entry."""

    id: str
    contact_id: str
    type: ActivityType
    title: str
    description: str | None = None
    created_at: str


class ContactCreateRequest(CamelModel):
    """Payload for creating a contact."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=500)
    suburb: str | None = Field(default=None, max_length=255)
    contact_type: ContactType = ContactType.LEAD
    lead_source: str | None = Field(default=None, max_length=255)
    status: ContactStatus = ContactStatus.NEW

    @field_validator("email", mode="before")
    @classmethod
    def _empty_email(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return _required_text(value, "Name")

    @field_validator("phone", "address", "suburb", "lead_source")
    @classmethod
    def _strip_optional(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class ContactUpdateRequest(CamelModel):
    """Partial contact update; only provided fields change.

    Omitting a field leaves it as is. ``null`` clears optional fields and is
    rejected for required ones.
    """

    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=500)
    suburb: str | None = Field(default=None, max_length=255)
    contact_type: ContactType | None = None
    lead_source: str | None = Field(default=None, max_length=255)
    status: ContactStatus | None = None

    @field_validator("email", mode="before")
    @classmethod
    def _empty_email(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str:
        return _required_text(value, "Name")

    @field_validator("contact_type", "status")
    @classmethod
    def _required(cls, value: object) -> object:
        return _not_null(value)

    @field_validator("phone", "address", "suburb", "lead_source")
    @classmethod
    def _strip_optional(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class TaskCreateRequest(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: str | None = None

    @field_validator("description", "due_date")
    @classmethod
    def _strip_optional(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class TaskUpdateRequest(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    due_date: str | None = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str | None) -> str:
        return _required_text(value, "Title")

    @field_validator("priority", "status")
    @classmethod
    def _required(cls, value: object) -> object:
        return _not_null(value)

    @field_validator("description", "due_date")
    @classmethod
    def _strip_optional(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class NoteCreateRequest(CamelModel):
    content: str = Field(min_length=1, max_length=10000)
    title: str | None = Field(default=None, max_length=255)

    @field_validator("content")
    @classmethod
    def _strip_content(cls, value: str) -> str:
        return _required_text(value, "Content")


class NoteUpdateRequest(CamelModel):
    content: str | None = Field(default=None, min_length=1, max_length=10000)
    title: str | None = Field(default=None, max_length=255)

    @field_validator("content")
    @classmethod
    def _strip_content(cls, value: str | None) -> str:
        return _required_text(value, "Content")


class ActivityCreateRequest(CamelModel):
    type: ActivityType
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)

    @field_validator("description")
    @classmethod
    def _strip_optional(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class BulkDeleteRequest(CamelModel):
    contact_ids: list[str] = Field(min_length=1, max_length=1000)


class BulkImportRequest(CamelModel):
    contacts: list[ContactCreateRequest] = Field(min_length=1, max_length=1000)


class ContactDetailResponse(Contact):
    """Contact with its most recent tasks, notes and activities."""

    tasks: list[Task] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)
    activities: list[Activity] = Field(default_factory=list)


class ContactListResponse(CamelModel):
    contacts: list[Contact]
    pagination: PaginationResponse


class TaskListResponse(CamelModel):
    tasks: list[Task]
