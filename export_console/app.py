import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config
from .client import ExportServiceClient, client_from_env
from .errors import ExportServiceError, ExportValidationError
from .schema import ExportAck, ExportJob, ExportJobSummary, build_export_request

app = FastAPI(
    title="Gemma Export Console",
    version="1.0.0",
    description="Relays export requests from the dashboard to the export service",
)

logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_export_client(
    token: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AsyncIterator[ExportServiceClient]:
    """
    Export service client carrying the caller's bearer token.

    The token is forwarded untouched; the export service verifies it.
    """
    try:
        client = client_from_env(token.credentials if token else None)
    except ValueError as e:
        logger.error(f"Export service is not configured: {e}")
        raise HTTPException(status_code=500, detail="Export service is not configured")
    try:
        yield client
    finally:
        await client.aclose()


def _relay_error(e: ExportServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code or 502, detail=e.message)


def _validate_payload(job_id: Optional[str], payload: Dict[str, Any]):
    try:
        return build_export_request(
            job_id=job_id,
            export_type=payload.get("export_type"),
            destination=payload.get("destination"),
            hf_token=payload.get("hf_token"),
            hf_repo_id=payload.get("hf_repo_id"),
        )
    except ExportValidationError as e:
        logger.warning(f"Rejected export request for job {job_id}: {e.message}")
        raise HTTPException(
            status_code=400, detail={"error": e.message, "fields": e.fields}
        )


@app.get("/health", name="Health Check")
async def health_check():
    return {"status": "healthy", "service": "export-console"}


@app.get("/exports", response_model=List[ExportJobSummary])
async def list_exports(client: ExportServiceClient = Depends(get_export_client)):
    try:
        return await client.list_exports()
    except ExportServiceError as e:
        logger.error(f"Failed to list export jobs: {e.message}")
        raise _relay_error(e)


@app.get("/exports/{job_id}", response_model=ExportJob)
async def get_export_job(
    job_id: str, client: ExportServiceClient = Depends(get_export_client)
):
    try:
        return await client.get_job(job_id)
    except ExportServiceError as e:
        logger.error(f"Failed to fetch export job {job_id}: {e.message}")
        raise _relay_error(e)


@app.post("/exports", response_model=ExportAck, name="Export Model")
async def submit_export(
    payload: Dict[str, Any] = Body(...),
    client: ExportServiceClient = Depends(get_export_client),
):
    request = _validate_payload(payload.get("job_id"), payload)
    try:
        return await client.submit_export(request)
    except ExportServiceError as e:
        logger.error(f"Failed to start export for job {request.job_id}: {e.message}")
        raise _relay_error(e)


@app.post("/jobs/{job_id}/export", response_model=ExportAck)
async def submit_job_export(
    job_id: str,
    payload: Dict[str, Any] = Body(...),
    client: ExportServiceClient = Depends(get_export_client),
):
    request = _validate_payload(job_id, payload)
    try:
        return await client.submit_export(request)
    except ExportServiceError as e:
        logger.error(f"Failed to start export for job {job_id}: {e.message}")
        raise _relay_error(e)


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
