"""Construction of the service graph from settings."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from site_evaluator.core.config import Settings
from site_evaluator.core.credentials import CredentialStore
from site_evaluator.core.database import DatabaseClient, build_engine, build_session_factory, close_database
from site_evaluator.core.exceptions import ConfigurationError
from site_evaluator.providers.factory import build_provider_registry
from site_evaluator.providers.registry import ProviderRegistry
from site_evaluator.services.blob_storage import BlobStore, DatabaseBlobStore, SupabaseBlobStore
from site_evaluator.services.job_orchestrator import JobOrchestrator
from site_evaluator.services.location_cache import LocationCache
from site_evaluator.services.report_coordinator import ReportCoordinator
from site_evaluator.services.report_renderer import PdfReportRenderer, ReportRenderer
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    db_client: DatabaseClient
    credentials: CredentialStore
    providers: ProviderRegistry
    location_cache: LocationCache
    orchestrator: JobOrchestrator
    reports: ReportCoordinator

    async def close(self) -> None:
        await close_database(self.db_client)


def build_blob_store(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    credentials: CredentialStore,
) -> BlobStore:
    backend = settings.storage.backend.lower()
    if backend == "database":
        return DatabaseBlobStore(session_factory)
    if backend == "supabase":
        if not settings.storage.supabase_url:
            raise ConfigurationError("SUPABASE_URL is required for the supabase storage backend")
        return SupabaseBlobStore(
            settings.storage.supabase_url,
            settings.storage.bucket,
            credentials,
            timeout=settings.http_timeout,
        )
    raise ConfigurationError(f"Unknown STORAGE_BACKEND '{settings.storage.backend}'")


def build_container(
    settings: Settings,
    engine: Optional[AsyncEngine] = None,
    providers: Optional[ProviderRegistry] = None,
    renderer: Optional[ReportRenderer] = None,
    blob_store: Optional[BlobStore] = None,
    clock=None,
) -> ServiceContainer:
    """Wire engine, providers and services.

    Any component can be supplied to replace the one built from settings.
    """
    engine = engine or build_engine(settings.db)
    session_factory = build_session_factory(engine)
    credentials = CredentialStore.from_settings(settings)
    providers = providers or build_provider_registry(settings, credentials)
    clock_kwargs = {"clock": clock} if clock is not None else {}

    location_cache = LocationCache(session_factory, providers, settings.cache, **clock_kwargs)
    orchestrator = JobOrchestrator(session_factory, location_cache, **clock_kwargs)
    reports = ReportCoordinator(
        session_factory,
        orchestrator,
        renderer or PdfReportRenderer(),
        blob_store or build_blob_store(settings, session_factory, credentials),
        **clock_kwargs,
    )

    LOGGER.info(
        "Service container built",
        extra={"database": engine.dialect.name, "storage": settings.storage.backend},
    )
    return ServiceContainer(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        db_client=DatabaseClient(engine),
        credentials=credentials,
        providers=providers,
        location_cache=location_cache,
        orchestrator=orchestrator,
        reports=reports,
    )
