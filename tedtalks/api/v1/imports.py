"""CSV import API: submit an upload, poll its status."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status
from pydantic import BaseModel

from tedtalks.jobs.models import ImportJob, ImportStatus

router = APIRouter(prefix="/import")

# Set by main.py during lifespan
_service = None


def set_import_service(service):
    global _service
    _service = service


class ImportInitResponse(BaseModel):
    import_id: str
    message: str
    status_url: str


class ImportStatusResponse(BaseModel):
    import_id: str
    status: ImportStatus
    started_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: ImportJob) -> "ImportStatusResponse":
        return cls(
            import_id=job.id,
            status=job.status,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


def _require_service():
    if _service is None:
        raise HTTPException(status_code=503, detail="Import service not initialized")
    return _service


@router.post(
    "/csv",
    response_model=ImportInitResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def import_csv(request: Request, file: UploadFile = File(...)):
    """Import TED Talks from a CSV file.

    The file is processed in the background. Poll the returned
    ``status_url`` until the import is COMPLETED or FAILED.
    """
    service = _require_service()
    job = await service.start_import(file)
    return ImportInitResponse(
        import_id=job.id,
        message="CSV import started. Check status using the provided URL.",
        status_url=str(request.url_for("get_import_status", import_id=job.id)),
    )


@router.get("/status/{import_id}", response_model=ImportStatusResponse)
async def get_import_status(import_id: str):
    """Get import status by ID."""
    service = _require_service()
    return ImportStatusResponse.from_job(service.get_status(import_id))
