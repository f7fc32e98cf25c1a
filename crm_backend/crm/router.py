"""FastAPI router for CRM endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from crm_backend.api.contracts import (
    ApiErrorResponse,
    BulkImportResponse,
    DeletedCountResponse,
    MessageResponse,
)
from crm_backend.auth.middleware import get_identity
from crm_backend.auth.models import IdentityContext
from crm_backend.crm.models import (
    Activity,
    ActivityCreateRequest,
    BulkDeleteRequest,
    BulkImportRequest,
    Contact,
    ContactCreateRequest,
    ContactDetailResponse,
    ContactListResponse,
    ContactStatus,
    ContactType,
    ContactUpdateRequest,
    Note,
    NoteCreateRequest,
    NoteUpdateRequest,
    Task,
    TaskCreateRequest,
    TaskListResponse,
    TaskStatus,
    TaskUpdateRequest,
)
from crm_backend.crm.service import CRMService

IDENTITY = Depends(get_identity)
GUARDED_RESPONSES: dict[int | str, dict] = {
    401: {"model": ApiErrorResponse},
    403: {"model": ApiErrorResponse},
    404: {"model": ApiErrorResponse},
}


class CRMRouter:
    """Factory wrapper that builds CRM API router from a service."""

    def __init__(self, service: CRMService) -> None:
        """Store service dependency used by route handlers."""
        self._service = service

    def build(self) -> APIRouter:
        """Create and return configured CRM router."""
        router = APIRouter(tags=["crm"])
        self._contact_routes(router)
        self._task_routes(router)
        self._note_routes(router)
        self._activity_routes(router)
        return router

    def _contact_routes(self, router: APIRouter) -> None:
        service = self._service

        @router.get("/contacts", response_model=ContactListResponse)
        def list_contacts(
            status: ContactStatus | None = Query(default=None),
            contact_type: ContactType | None = Query(default=None, alias="contactType"),
            search: str = Query(default=""),
            page: int = Query(default=1, ge=1),
            limit: int = Query(default=100, ge=1),
            identity: IdentityContext = IDENTITY,
        ) -> ContactListResponse:
            """List the caller's contacts with filters and pagination."""
            return service.list_contacts(
                identity,
                status=status,
                contact_type=contact_type,
                search=search,
                page=page,
                limit=limit,
            )

        @router.post(
            "/contacts",
            response_model=Contact,
            status_code=201,
            responses={409: {"model": ApiErrorResponse}},
        )
        def create_contact(
            req: ContactCreateRequest, identity: IdentityContext = IDENTITY
        ) -> Contact:
            return service.create_contact(identity, req)

        @router.delete("/contacts", response_model=DeletedCountResponse)
        def bulk_delete_contacts(
            req: BulkDeleteRequest, identity: IdentityContext = IDENTITY
        ) -> DeletedCountResponse:
            """Delete several contacts; ids the caller does not own are ignored."""
            deleted = service.bulk_delete_contacts(identity, req.contact_ids)
            return DeletedCountResponse(
                message=f"Deleted {deleted} contacts", deleted=deleted
            )

        @router.post(
            "/contacts/bulk-import",
            response_model=BulkImportResponse,
            status_code=201,
        )
        def bulk_import_contacts(
            req: BulkImportRequest, identity: IdentityContext = IDENTITY
        ) -> BulkImportResponse:
            imported, skipped = service.bulk_import_contacts(identity, req.contacts)
            return BulkImportResponse(
                message=f"Imported {imported} contacts",
                imported=imported,
                skipped=skipped,
            )

        @router.get(
            "/contacts/{contact_id}",
            response_model=ContactDetailResponse,
            responses=GUARDED_RESPONSES,
        )
        def get_contact(
            contact_id: str, identity: IdentityContext = IDENTITY
        ) -> ContactDetailResponse:
            return service.get_contact(identity, contact_id)

        @router.put(
            "/contacts/{contact_id}",
            response_model=Contact,
            responses=GUARDED_RESPONSES,
        )
        def update_contact(
            contact_id: str,
            req: ContactUpdateRequest,
            identity: IdentityContext = IDENTITY,
        ) -> Contact:
            return service.update_contact(identity, contact_id, req)

        @router.delete(
            "/contacts/{contact_id}",
            response_model=MessageResponse,
            responses=GUARDED_RESPONSES,
        )
        def delete_contact(
            contact_id: str, identity: IdentityContext = IDENTITY
        ) -> MessageResponse:
            service.delete_contact(identity, contact_id)
            return MessageResponse(message="Contact deleted successfully")

    def _task_routes(self, router: APIRouter) -> None:
        service = self._service

        @router.get("/tasks", response_model=TaskListResponse)
        def list_tasks(
            status: TaskStatus | None = Query(default=None),
            identity: IdentityContext = IDENTITY,
        ) -> TaskListResponse:
            return TaskListResponse(tasks=service.list_tasks(identity, status=status))

        @router.post(
            "/contacts/{contact_id}/tasks",
            response_model=Task,
            status_code=201,
            responses=GUARDED_RESPONSES,
        )
        def create_task(
            contact_id: str, req: TaskCreateRequest, identity: IdentityContext = IDENTITY
        ) -> Task:
            return service.create_task(identity, contact_id, req)

        @router.put(
            "/contacts/{contact_id}/tasks/{task_id}",
            response_model=Task,
            responses=GUARDED_RESPONSES,
        )
        def update_contact_task(
            contact_id: str,
            task_id: str,
            req: TaskUpdateRequest,
            identity: IdentityContext = IDENTITY,
        ) -> Task:
            return service.update_task(identity, task_id, req, contact_id=contact_id)

        @router.delete(
            "/contacts/{contact_id}/tasks/{task_id}",
            response_model=MessageResponse,
            responses=GUARDED_RESPONSES,
        )
        def delete_contact_task(
            contact_id: str, task_id: str, identity: IdentityContext = IDENTITY
        ) -> MessageResponse:
            service.delete_task(identity, task_id, contact_id=contact_id)
            return MessageResponse(message="Task deleted successfully")

        @router.put("/tasks/{task_id}", response_model=Task, responses=GUARDED_RESPONSES)
        def update_task(
            task_id: str, req: TaskUpdateRequest, identity: IdentityContext = IDENTITY
        ) -> Task:
            return service.update_task(identity, task_id, req)

        @router.delete(
            "/tasks/{task_id}",
            response_model=MessageResponse,
            responses=GUARDED_RESPONSES,
        )
        def delete_task(
            task_id: str, identity: IdentityContext = IDENTITY
        ) -> MessageResponse:
            service.delete_task(identity, task_id)
            return MessageResponse(message="Task deleted successfully")

    def _note_routes(self, router: APIRouter) -> None:
        service = self._service

        @router.post(
            "/contacts/{contact_id}/notes",
            response_model=Note,
            status_code=201,
            responses=GUARDED_RESPONSES,
        )
        def create_note(
            contact_id: str, req: NoteCreateRequest, identity: IdentityContext = IDENTITY
        ) -> Note:
            return service.create_note(identity, contact_id, req)

        @router.put(
            "/contacts/{contact_id}/notes/{note_id}",
            response_model=Note,
            responses=GUARDED_RESPONSES,
        )
        def update_contact_note(
            contact_id: str,
            note_id: str,
            req: NoteUpdateRequest,
            identity: IdentityContext = IDENTITY,
        ) -> Note:
            return service.update_note(identity, note_id, req, contact_id=contact_id)

        @router.delete(
            "/contacts/{contact_id}/notes/{note_id}",
            response_model=MessageResponse,
            responses=GUARDED_RESPONSES,
        )
        def delete_contact_note(
            contact_id: str, note_id: str, identity: IdentityContext = IDENTITY
        ) -> MessageResponse:
            service.delete_note(identity, note_id, contact_id=contact_id)
            return MessageResponse(message="Note deleted successfully")

        @router.put("/notes/{note_id}", response_model=Note, responses=GUARDED_RESPONSES)
        def update_note(
            note_id: str, req: NoteUpdateRequest, identity: IdentityContext = IDENTITY
        ) -> Note:
            return service.update_note(identity, note_id, req)

        @router.delete(
            "/notes/{note_id}",
            response_model=MessageResponse,
            responses=GUARDED_RESPONSES,
        )
        def delete_note(
            note_id: str, identity: IdentityContext = IDENTITY
        ) -> MessageResponse:
            service.delete_note(identity, note_id)
            return MessageResponse(message="Note deleted successfully")

    def _activity_routes(self, router: APIRouter) -> None:
        service = self._service

        @router.post(
            "/contacts/{contact_id}/activities",
            response_model=Activity,
            status_code=201,
            responses=GUARDED_RESPONSES,
        )
        def create_activity(
            contact_id: str,
            req: ActivityCreateRequest,
            identity: IdentityContext = IDENTITY,
        ) -> Activity:
            return service.create_activity(identity, contact_id, req)

        @router.delete(
            "/contacts/{contact_id}/activities/{activity_id}",
            response_model=MessageResponse,
            responses=GUARDED_RESPONSES,
        )
        def delete_activity(
            contact_id: str, activity_id: str, identity: IdentityContext = IDENTITY
        ) -> MessageResponse:
            service.delete_activity(identity, contact_id, activity_id)
            return MessageResponse(message="Activity deleted successfully")


def create_crm_router(service: CRMService) -> APIRouter:
    """Build CRM router for contacts and their child records."""
    return CRMRouter(service).build()
