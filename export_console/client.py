import logging
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from . import config
from .errors import (
    ExportRequestRejected,
    ExportServiceError,
    ExportServiceUnavailable,
    JobNotFoundError,
)
from .schema import ExportAck, ExportJob, ExportJobSummary, ExportRequest

logger = logging.getLogger(__name__)


class ExportServiceClient:
    """
    Async HTTP client for the Export Service and the job registry behind it.

    Requests are sent exactly once. Export work is expensive and not
    idempotent on the service side, so failures are reported to the caller
    instead of being retried here.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL of the export service (e.g. "https://export.example.com")
            auth_token: Bearer token forwarded to the service, if any
            timeout: Request timeout in seconds
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ExportServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(
        self, method: str, path: str, job_id: Optional[str] = None, **kwargs
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Raises:
            ExportServiceUnavailable: On timeouts, connection errors and 5xx
            JobNotFoundError: On 404
            ExportRequestRejected: On any other 4xx
            ExportServiceError: If the body is not valid JSON
        """
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Export service request {method} {path} timed out: {e}")
            raise ExportServiceUnavailable("Export service request timed out")
        except httpx.TransportError as e:
            logger.error(f"Export service request {method} {path} failed: {e}")
            raise ExportServiceUnavailable(f"Export service unreachable: {e}")

        if response.status_code >= 400:
            detail = self._error_detail(response)
            logger.error(
                f"Export service returned {response.status_code} for {method} {path}: {detail}"
            )
            if response.status_code == 404:
                raise JobNotFoundError(job_id or "", detail)
            if response.status_code >= 500:
                raise ExportServiceUnavailable(detail, status_code=response.status_code)
            raise ExportRequestRejected(detail, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from export service for {method} {path}: {e}")
            raise ExportServiceError("Export service returned an invalid response")

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        # FastAPI services answer {"detail": ...}, the dashboard relays {"error": ...}
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            detail = data.get("detail") or data.get("error")
            if detail:
                return detail if isinstance(detail, str) else str(detail)
        return f"Export service returned {response.status_code}"

    async def get_job(self, job_id: str) -> ExportJob:
        """
        Fetch a job with its artifacts and latest export attempt.

        Args:
            job_id: Training job identifier

        Returns:
            ExportJob: Current server view of the job
        """
        data = await self._request("GET", f"/exports/{job_id}", job_id=job_id)
        try:
            return ExportJob.model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid export job payload for {job_id}: {e}")
            raise ExportServiceError(f"Response validation failed: {e}")

    async def submit_export(self, request: ExportRequest) -> ExportAck:
        """
        Ask the service to start an export.

        Args:
            request: A validated export request

        Returns:
            ExportAck: Acknowledgment with the new export id
        """
        logger.info(
            f"Submitting {request.export_type} export for job {request.job_id} "
            f"to {', '.join(request.destination)}"
        )
        data = await self._request(
            "POST",
            "/exports",
            job_id=request.job_id,
            json=request.model_dump(exclude_none=True),
        )
        try:
            return ExportAck.model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid export acknowledgment for {request.job_id}: {e}")
            raise ExportServiceError(f"Response validation failed: {e}")

    async def list_exports(self) -> List[ExportJobSummary]:
        data = await self._request("GET", "/exports")
        if isinstance(data, dict):
            data = data.get("jobs", [])
        try:
            return [ExportJobSummary.model_validate(entry) for entry in data]
        except (ValidationError, TypeError) as e:
            logger.error(f"Invalid export job list: {e}")
            raise ExportServiceError(f"Response validation failed: {e}")


def client_from_env(auth_token: Optional[str] = None) -> ExportServiceClient:
    """
    Build a client from the environment configuration.

    Args:
        auth_token: Bearer token to forward, EXPORT_SERVICE_TOKEN by default
    """
    return ExportServiceClient(
        config.get_export_service_url(),
        auth_token=auth_token or config.EXPORT_SERVICE_TOKEN,
        timeout=config.REQUEST_TIMEOUT_SECONDS,
    )
