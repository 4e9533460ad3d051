"""Map application exceptions to RFC 9457 problem responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tedtalks.errors import (
    CsvImportError,
    DuplicateImportError,
    ImportNotFoundError,
    StoreUnavailableError,
    TalkNotFoundError,
    TooManyImportsError,
)

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"
URN_PREFIX = "urn:ted-talks:"


def problem(
    request: Request,
    status_code: int,
    kind: str,
    title: str,
    detail: str,
    headers=None,
    **extra,
) -> JSONResponse:
    body = {
        "type": URN_PREFIX + kind,
        "title": title,
        "status": status_code,
        "detail": detail,
        "instance": request.url.path,
        **extra,
    }
    return JSONResponse(
        body, status_code=status_code, headers=headers, media_type=PROBLEM_MEDIA_TYPE
    )


async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Resource not found: %s", exc)
    return problem(request, 404, "resource-not-found", "Resource Not Found", str(exc))


async def _csv_import_error(request: Request, exc: CsvImportError) -> JSONResponse:
    logger.warning("CSV import error: %s", exc)
    return problem(request, exc.status_code, "csv-import-error", "CSV Import Error", str(exc))


async def _too_many_imports(request: Request, exc: TooManyImportsError) -> JSONResponse:
    logger.warning("Too many concurrent imports - rejecting request")
    return problem(
        request,
        503,
        "too-many-imports",
        "Too Many Concurrent Imports",
        str(exc),
        headers={"Retry-After": str(exc.retry_after_seconds)},
        retry_after_seconds=exc.retry_after_seconds,
    )


async def _store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    logger.error("Store unavailable: %s", exc, exc_info=exc)
    return problem(request, 503, "store-unavailable", "Store Unavailable", str(exc))


async def _duplicate_import(request: Request, exc: DuplicateImportError) -> JSONResponse:
    logger.error("Duplicate import id: %s", exc.job_id)
    return problem(request, 409, "duplicate-import", "Duplicate Import", str(exc))


def register_problem_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ImportNotFoundError, _not_found)
    app.add_exception_handler(TalkNotFoundError, _not_found)
    app.add_exception_handler(CsvImportError, _csv_import_error)
    app.add_exception_handler(TooManyImportsError, _too_many_imports)
    app.add_exception_handler(StoreUnavailableError, _store_unavailable)
    app.add_exception_handler(DuplicateImportError, _duplicate_import)
