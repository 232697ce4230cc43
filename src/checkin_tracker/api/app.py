"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from checkin_tracker.api.models import CheckInRequest, UpdateCustomerRequest
from checkin_tracker.app_logging import configure_logging
from checkin_tracker.containers import AppContainer
from checkin_tracker.domain.documents import record_to_document, session_to_document
from checkin_tracker.domain.errors import (
    PersistenceError,
    SessionNotFoundError,
    SessionValidationError,
)
from checkin_tracker.domain.sessions import DURATION_OPTIONS
from checkin_tracker.services.clock import format_remaining, progress_percent
from checkin_tracker.services.extensions import ExtensionDenied


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        state_container.sync_service.load()
        for task in state_container.periodic_tasks:
            task.start()
        yield
        for task in state_container.periodic_tasks:
            await task.stop()
        try:
            await state_container.close_resources()
        except Exception:
            logger.exception("Failed to close resources")

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(SessionNotFoundError)
    async def not_found_handler(
        request: Request, exc: SessionNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404, content={"error": exc.message, "details": exc.details}
        )

    @app.exception_handler(SessionValidationError)
    async def validation_handler(
        request: Request, exc: SessionValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422, content={"error": exc.message, "details": exc.details}
        )

    @app.exception_handler(PersistenceError)
    async def persistence_handler(
        request: Request, exc: PersistenceError
    ) -> JSONResponse:
        return JSONResponse(status_code=503, content={"error": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/health/database")
    async def database_health(request: Request) -> JSONResponse:
        """Check that the remote store answers queries."""
        state_container: AppContainer = request.app.state.container
        try:
            state_container.check_database()
        except Exception:
            logger.exception("Database connection check failed")
            return JSONResponse(
                status_code=500,
                content={"status": "error", "message": "Failed to connect to database"},
            )
        return JSONResponse(
            content={"status": "success", "message": "Successfully connected"}
        )

    @app.get("/customers")
    async def list_customers(
        request: Request, search: str | None = None
    ) -> dict[str, object]:
        """Return customers in display order, optionally filtered by name."""
        state_container: AppContainer = request.app.state.container
        sessions = state_container.sync_service.list_sessions(search)
        return {"customers": [session_to_document(session) for session in sessions]}

    @app.get("/customers/stats")
    async def customer_stats(request: Request) -> dict[str, int]:
        """Return headline counters."""
        state_container: AppContainer = request.app.state.container
        counts = state_container.sync_service.collection.counts()
        return {
            "total": counts.total,
            "checkedIn": counts.checked_in,
            "checkedOut": counts.checked_out,
        }

    @app.get("/customers/duration-options")
    async def duration_options() -> dict[str, object]:
        """Return preset session lengths."""
        return {
            "options": [
                {"label": label, "value": value} for label, value in DURATION_OPTIONS
            ]
        }

    @app.post("/customers", status_code=201)
    async def check_in(payload: CheckInRequest, request: Request) -> dict[str, object]:
        """Check a customer in."""
        state_container: AppContainer = request.app.state.container
        session = state_container.sync_service.check_in(payload.name, payload.duration)
        return session_to_document(session)

    @app.put("/customers/{customer_id}")
    async def update_customer(
        customer_id: str, payload: UpdateCustomerRequest, request: Request
    ) -> dict[str, object]:
        """Rename a customer and/or re-check them in with a new duration."""
        state_container: AppContainer = request.app.state.container
        sync_service = state_container.sync_service
        session = sync_service.update(customer_id, payload.name, payload.duration)
        return session_to_document(session)

    @app.post("/customers/{customer_id}/extend")
    async def extend(customer_id: str, request: Request) -> dict[str, object]:
        """Request a time extension."""
        state_container: AppContainer = request.app.state.container
        session, outcome = state_container.sync_service.extend(customer_id)
        if isinstance(outcome, ExtensionDenied):
            return {
                "granted": False,
                "message": outcome.reason,
                "retryAfterMs": outcome.retry_after_ms,
                "customer": session_to_document(session),
            }
        return {
            "granted": True,
            "message": "Time extended",
            "retryAfterMs": 0,
            "customer": session_to_document(session),
        }

    @app.post("/customers/{customer_id}/checkout")
    async def check_out(customer_id: str, request: Request) -> dict[str, object]:
        """Check a customer out."""
        state_container: AppContainer = request.app.state.container
        session = state_container.sync_service.check_out(customer_id)
        return session_to_document(session)

    @app.get("/customers/{customer_id}/timer")
    async def timer(customer_id: str, request: Request) -> dict[str, object]:
        """Countdown for display refresh; expires the session when time is up."""
        state_container: AppContainer = request.app.state.container
        sync_service = state_container.sync_service
        session, reading = sync_service.read_timer(customer_id)
        interval = session.interval
        return {
            "id": session.id,
            "status": session.status,
            "remainingMs": reading.remaining_ms,
            "timeLeft": format_remaining(reading.remaining_ms),
            "progress": progress_percent(
                interval.start_time, interval.end_time, sync_service.clock()
            ),
            "isNearingEnd": session.is_checked_in and reading.is_nearing_end,
            "isExpired": reading.is_expired,
        }

    @app.delete("/customers/{customer_id}")
    async def delete_customer(customer_id: str, request: Request) -> dict[str, str]:
        """Delete a customer permanently."""
        state_container: AppContainer = request.app.state.container
        state_container.sync_service.delete(customer_id)
        return {"message": "Customer deleted"}

    @app.post("/customers/{customer_id}/photo")
    async def upload_photo(customer_id: str, request: Request) -> dict[str, object]:
        """Store the raw request body as the customer's photo."""
        state_container: AppContainer = request.app.state.container
        content = await request.body()
        content_type = request.headers.get("content-type", "image/jpeg")
        session = state_container.photo_service.upload(
            customer_id, content, content_type
        )
        return {"photoUrl": session.photo}

    @app.delete("/customers/{customer_id}/photo")
    async def delete_photo(customer_id: str, request: Request) -> dict[str, str]:
        """Remove the customer's photo."""
        state_container: AppContainer = request.app.state.container
        state_container.photo_service.remove(customer_id)
        return {"message": "Photo deleted"}

    @app.get("/records")
    async def list_records(request: Request) -> dict[str, object]:
        """Return the per-customer visit rollup."""
        state_container: AppContainer = request.app.state.container
        records = state_container.record_service.list_records()
        return {"records": [record_to_document(record) for record in records]}

    @app.get("/backup/export")
    async def export_backup(request: Request) -> JSONResponse:
        """Download a JSON backup of customers and records."""
        state_container: AppContainer = request.app.state.container
        snapshot = state_container.backup_service.export_snapshot()
        filename = f"customer_data_backup_{_today()}.json"
        return JSONResponse(
            content=snapshot,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/backup/export.csv")
    async def export_csv(request: Request) -> Response:
        """Download the customer list as CSV."""
        state_container: AppContainer = request.app.state.container
        filename = f"customers_{_today()}.csv"
        return Response(
            content=state_container.backup_service.export_csv(),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/backup/import")
    async def import_backup(request: Request) -> dict[str, object]:
        """Validate and apply a JSON backup; rejected files change nothing."""
        state_container: AppContainer = request.app.state.container
        summary = state_container.backup_service.import_snapshot(await request.body())
        return {
            "message": "Import successful",
            "customers": len(summary.customers),
            "records": len(summary.records),
        }

    return app


def _today() -> str:
    return datetime.now(tz=UTC).date().isoformat()
