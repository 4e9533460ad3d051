"""TED Talks Catalog - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tedtalks.config import Settings, settings
from tedtalks.api.problems import register_problem_handlers
from tedtalks.api.v1.router import v1_router
from tedtalks.api.v1.health import router as health_root_router
from tedtalks.api.v1 import health as health_api
from tedtalks.api.v1 import imports as imports_api
from tedtalks.api.v1 import talks as talks_api
from tedtalks.jobs.orchestrator import ImportOrchestrator
from tedtalks.jobs.recovery import RecoverySweep
from tedtalks.jobs.service import ImportService
from tedtalks.jobs.worker_pool import ImportWorkerPool
from tedtalks.storage.factory import build_storage
from tedtalks.storage.staged_files import StagedFileHolder

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    )


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    cfg = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        configure_logging(cfg.log_level)
        logger.info("Starting %s %s", cfg.app_name, cfg.app_version)
        logger.info("Storage backend: %s", cfg.storage_backend)
        logger.info("Staging dir: %s", cfg.staging_dir)

        job_store, talk_repository, close_storage = build_storage(cfg)
        staging = StagedFileHolder(cfg.staging_dir, prefix=cfg.staged_file_prefix)

        # Repair what a previous process left behind before any import can start
        report = RecoverySweep(
            job_store, staging, stale_after=timedelta(minutes=cfg.stale_import_minutes)
        ).run()
        logger.info(
            "Recovery sweep: %d stuck import(s) failed, %d staged file(s) deleted, %d error(s)",
            len(report.failed_jobs), len(report.deleted_files), report.errors,
        )

        pool = ImportWorkerPool(
            max_concurrent=cfg.max_concurrent_imports,
            queue_capacity=cfg.import_queue_capacity,
            idle_timeout=cfg.worker_idle_timeout_seconds,
        )
        await pool.start()
        logger.info(
            "Import worker pool started (max %d concurrent, %d queued)",
            cfg.max_concurrent_imports, cfg.import_queue_capacity,
        )

        orchestrator = ImportOrchestrator(
            job_store, talk_repository, staging, batch_size=cfg.import_batch_size
        )
        service = ImportService(
            job_store,
            staging,
            pool,
            orchestrator,
            max_upload_bytes=cfg.max_upload_mb * 1024 * 1024,
            retry_after_seconds=cfg.import_retry_after_seconds,
        )

        # Wire services into API endpoints
        imports_api.set_import_service(service)
        talks_api.set_talk_repository(
            talk_repository, cfg.default_page_size, cfg.max_page_size
        )
        health_api.set_dispatcher(
            pool,
            service=cfg.app_name,
            version=cfg.app_version,
            storage_backend=cfg.storage_backend,
        )

        yield

        # Shutdown
        logger.info("Shutting down %s", cfg.app_name)
        imports_api.set_import_service(None)
        health_api.set_dispatcher(None)
        await pool.stop()
        talks_api.set_talk_repository(None)
        close_storage()

    app = FastAPI(
        title="TED Talk API",
        description="API for managing and importing TED Talks",
        version=cfg.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_problem_handlers(app)

    # Mount routers
    app.include_router(health_root_router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)  # All /api/v1/* endpoints
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tedtalks.main:app", host="0.0.0.0", port=settings.api_port)
