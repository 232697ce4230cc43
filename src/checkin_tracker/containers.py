"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import create_client

from checkin_tracker.adapters.json_file_cache import JsonFileCache
from checkin_tracker.adapters.supabase_photo_storage import SupabasePhotoStorage
from checkin_tracker.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from checkin_tracker.config import Settings
from checkin_tracker.services.backup import BackupService
from checkin_tracker.services.cache import InMemoryLocalCache, LocalCache
from checkin_tracker.services.clock import MS_PER_MINUTE
from checkin_tracker.services.collection import CustomerCollection
from checkin_tracker.services.extensions import ExtensionPolicy
from checkin_tracker.services.photos import PhotoService
from checkin_tracker.services.records import CustomerRecordService
from checkin_tracker.services.scheduler import PeriodicTask
from checkin_tracker.services.sessions import SessionStateMachine
from checkin_tracker.services.sync import SessionSyncService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    sync_service: SessionSyncService
    record_service: CustomerRecordService
    photo_service: PhotoService
    backup_service: BackupService
    periodic_tasks: list[PeriodicTask]
    check_database: Callable[[], None]
    close_resources: Callable[[], Awaitable[None]]


def build_state_machine(settings: Settings) -> SessionStateMachine:
    """Build the state machine from the configured timer policy."""
    return SessionStateMachine(
        policy=ExtensionPolicy(
            max_extensions=settings.max_extensions,
            extension_minutes=settings.extension_minutes,
            cooldown_ms=settings.extension_cooldown_minutes * MS_PER_MINUTE,
        ),
        warning_threshold_ms=settings.warning_threshold_minutes * MS_PER_MINUTE,
    )


def build_periodic_tasks(
    settings: Settings, sync_service: SessionSyncService
) -> list[PeriodicTask]:
    """Expiry scan and local cache snapshot tasks."""
    return [
        PeriodicTask(
            name="expiry-scan",
            interval_seconds=settings.scan_interval_seconds,
            action=sync_service.scan,
        ),
        PeriodicTask(
            name="cache-autosave",
            interval_seconds=settings.autosave_interval_seconds,
            action=sync_service.save_snapshot,
        ),
    ]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    cache: LocalCache
    if resolved_settings.local_cache_dir:
        cache = JsonFileCache(Path(resolved_settings.local_cache_dir))
    else:
        cache = InMemoryLocalCache()
    session_repository = SupabaseSessionRepository(
        supabase_client, table=resolved_settings.supabase_customers_table
    )
    photo_storage = SupabasePhotoStorage(
        supabase_client, bucket=resolved_settings.supabase_photo_bucket
    )
    record_service = CustomerRecordService(cache)
    sync_service = SessionSyncService(
        repository=session_repository,
        collection=CustomerCollection(build_state_machine(resolved_settings)),
        cache=cache,
        records=record_service,
        cache_retention_ms=resolved_settings.cache_retention_hours * 60 * MS_PER_MINUTE,
    )
    photo_service = PhotoService(storage=photo_storage, sync=sync_service)
    backup_service = BackupService(sync=sync_service, records=record_service)

    def check_database() -> None:
        supabase_client.table(resolved_settings.supabase_customers_table).select(
            "id"
        ).limit(1).execute()

    async def close_resources() -> None:
        sync_service.save_snapshot()

    return AppContainer(
        settings=resolved_settings,
        sync_service=sync_service,
        record_service=record_service,
        photo_service=photo_service,
        backup_service=backup_service,
        periodic_tasks=build_periodic_tasks(resolved_settings, sync_service),
        check_database=check_database,
        close_resources=close_resources,
    )
