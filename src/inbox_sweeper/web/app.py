"""FastAPI application exposing sync, actions, categories and live events."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import (
    Depends,
    FastAPI,
    Header,
    HTTPException,
    Query,
    Request,
    status as http_status,
)
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from ..actions import BulkActionReport, BulkActionService
from ..bootstrap import build_container
from ..core import AppSettings, ServiceContainer, load_app_settings
from ..core.errors import (
    DivergenceError,
    InboxSweeperError,
    InvariantError,
    NotFoundError,
    OwnerNotFoundError,
    PartialSyncError,
)
from ..core.interfaces import OwnerRepository
from ..core.models import Owner, SyncReport
from ..ingestion import SyncEngine
from ..intelligence import CategoryService
from ..realtime import Broadcaster, SyncScheduler, encode_event
from ..realtime.broadcaster import EVENT_CONNECTION
from ..unsubscribe import UnsubscribeService

LOGGER = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 30.0


class EmailIdsRequest(BaseModel):
    email_ids: list[str] = Field(min_length=1)


class BulkActionRequest(EmailIdsRequest):
    action: str


class ClassifyRequest(BaseModel):
    subject: str = ""
    body: str


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""


class CategoryUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None


def create_app(
    settings: AppSettings | None = None, *, container: ServiceContainer | None = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = settings or load_app_settings()
    services = container or build_container(app_settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        scheduler: SyncScheduler | None = None
        if app_settings.sync.scheduler_enabled:
            scheduler = services.resolve("scheduler")
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            await services.resolve("broadcaster").close()
            store = services.built("store")
            if store is not None:
                store.close()
            LOGGER.info("Inbox Sweeper shut down")

    app = FastAPI(title="Inbox Sweeper", lifespan=lifespan)
    app.state.container = services

    def get_owner(x_user_id: str | None = Header(default=None)) -> Owner:
        if not x_user_id:
            raise HTTPException(
                status_code=http_status.HTTP_401_UNAUTHORIZED,
                detail="Missing X-User-Id header",
            )
        owners: OwnerRepository = services.resolve("owners")
        owner = owners.find_by_id(x_user_id)
        if owner is None:
            raise OwnerNotFoundError(f"Owner {x_user_id} not found")
        return owner

    @app.exception_handler(InboxSweeperError)
    async def handle_domain_error(_request: Request, exc: InboxSweeperError) -> JSONResponse:
        return _error_response(exc)

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/emails/sync")
    async def sync_emails(
        max_results: int | None = Query(default=None, ge=1, le=500),
        after_email_id: str | None = Query(default=None),
        owner: Owner = Depends(get_owner),  # noqa: B008
    ) -> dict[str, Any]:
        engine: SyncEngine = services.resolve("sync_engine")
        limit = max_results or app_settings.gmail.max_fetch
        broadcaster: Broadcaster = services.resolve("broadcaster")
        try:
            report = await engine.sync(owner.id, limit, after_email_id)
        except PartialSyncError as exc:
            await broadcaster.announce(owner.id, exc.report.persisted)
            raise
        await broadcaster.announce(owner.id, report.persisted)
        return {"status": "ok", **_serialize_report(report)}

    @app.get("/api/emails")
    async def list_emails(owner: Owner = Depends(get_owner)) -> list[dict[str, Any]]:  # noqa: B008
        engine: SyncEngine = services.resolve("sync_engine")
        return [message.to_dict() for message in engine.list_messages(owner.id)]

    @app.get("/api/categories/{category_id}/emails")
    async def list_category_emails(
        category_id: str, owner: Owner = Depends(get_owner)  # noqa: B008
    ) -> list[dict[str, Any]]:
        engine: SyncEngine = services.resolve("sync_engine")
        return [
            message.to_dict() for message in engine.list_by_category(owner.id, category_id)
        ]

    @app.post("/api/emails/bulk")
    async def bulk_action(
        payload: BulkActionRequest, owner: Owner = Depends(get_owner)  # noqa: B008
    ) -> dict[str, Any]:
        service: BulkActionService = services.resolve("bulk_actions")
        report = await service.perform(payload.email_ids, payload.action, owner.id)
        return _serialize_bulk(report)

    @app.post("/api/emails/delete")
    async def delete_emails(
        payload: EmailIdsRequest, owner: Owner = Depends(get_owner)  # noqa: B008
    ) -> dict[str, Any]:
        service: BulkActionService = services.resolve("bulk_actions")
        report = await service.delete_messages(payload.email_ids, owner.id)
        return _serialize_bulk(report)

    @app.post("/api/emails/classify")
    async def classify_email(
        payload: ClassifyRequest, owner: Owner = Depends(get_owner)  # noqa: B008
    ) -> dict[str, str]:
        engine: SyncEngine = services.resolve("sync_engine")
        content = f"Subject: {payload.subject}\n\n{payload.body}" if payload.subject else payload.body
        category = await engine.classify_content(content)
        LOGGER.info("Classified ad-hoc content for owner %s as %s", owner.id, category.name)
        return {"category_id": category.id, "category_name": category.name}

    @app.post("/api/unsubscribe")
    async def unsubscribe(
        payload: EmailIdsRequest, owner: Owner = Depends(get_owner)  # noqa: B008
    ) -> dict[str, Any]:
        service: UnsubscribeService = services.resolve("unsubscribe")
        report = await service.unsubscribe(payload.email_ids, owner.id)
        return {
            "succeeded": report.succeeded,
            "failed": report.failed,
            "skipped": report.skipped,
        }

    @app.get("/api/categories")
    async def list_categories() -> list[dict[str, Any]]:
        service: CategoryService = services.resolve("category_service")
        return [category.to_dict() for category in service.list_categories()]

    @app.post("/api/categories", status_code=http_status.HTTP_201_CREATED)
    async def create_category(
        payload: CategoryCreateRequest, _owner: Owner = Depends(get_owner)  # noqa: B008
    ) -> dict[str, Any]:
        service: CategoryService = services.resolve("category_service")
        return service.create_category(payload.name, payload.description).to_dict()

    @app.put("/api/categories/{category_id}")
    async def update_category(
        category_id: str,
        payload: CategoryUpdateRequest,
        _owner: Owner = Depends(get_owner),  # noqa: B008
    ) -> dict[str, Any]:
        service: CategoryService = services.resolve("category_service")
        category = service.update_category(
            category_id, name=payload.name, description=payload.description
        )
        return category.to_dict()

    @app.delete("/api/categories/{category_id}")
    async def delete_category(
        category_id: str, _owner: Owner = Depends(get_owner)  # noqa: B008
    ) -> dict[str, str]:
        service: CategoryService = services.resolve("category_service")
        service.delete_category(category_id)
        return {"status": "deleted", "id": category_id}

    @app.get("/api/events")
    async def events(owner: Owner = Depends(get_owner)) -> StreamingResponse:  # noqa: B008
        broadcaster: Broadcaster = services.resolve("broadcaster")
        return StreamingResponse(
            event_stream(broadcaster, owner.id),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app


async def event_stream(
    broadcaster: Broadcaster, owner_id: str, *, keepalive: float = KEEPALIVE_SECONDS
) -> AsyncIterator[str]:
    """Yield Server-Sent Events for ``owner_id`` until the sink closes."""
    sink = await broadcaster.register(owner_id)
    try:
        connected = encode_event(EVENT_CONNECTION, {"message": "Connected to event stream"})
        yield f"data: {connected}\n\n"
        while True:
            try:
                payload = await asyncio.wait_for(sink.receive(), keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            if payload is None:
                break
            yield f"data: {payload}\n\n"
    finally:
        await broadcaster.unregister(owner_id, sink)


def _serialize_report(report: SyncReport) -> dict[str, Any]:
    return {
        "fetched": len(report.fetched),
        "persisted": len(report.persisted),
        "skipped": report.skipped,
        "failed": [
            {"gmail_id": failure.provider_id, "reason": failure.reason}
            for failure in report.failures
        ],
        "emails": [message.to_dict() for message in report.persisted],
    }


def _serialize_bulk(report: BulkActionReport) -> dict[str, Any]:
    return {
        "action": report.action.value,
        "processed": report.processed,
        "failed": report.failed,
        "skipped": report.skipped,
    }


def _error_response(exc: InboxSweeperError) -> JSONResponse:
    if isinstance(exc, PartialSyncError):
        return JSONResponse(
            status_code=http_status.HTTP_207_MULTI_STATUS,
            content={"status": "partial", "error": str(exc), **_serialize_report(exc.report)},
        )
    if isinstance(exc, DivergenceError):
        return JSONResponse(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc), "email_ids": list(exc.message_ids)},
        )
    if isinstance(exc, NotFoundError):
        status_code = http_status.HTTP_404_NOT_FOUND
    elif isinstance(exc, InvariantError):
        status_code = http_status.HTTP_400_BAD_REQUEST
    else:
        status_code = http_status.HTTP_502_BAD_GATEWAY
    LOGGER.warning("Request failed with %s: %s", status_code, exc)
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


__all__ = ["create_app", "event_stream"]
