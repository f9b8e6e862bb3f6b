from typing import Dict, Optional


class ExportError(Exception):
    """Base class for export lifecycle errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ExportValidationError(ExportError):
    """Invalid export input, detected locally and never sent over the wire."""

    def __init__(self, fields: Dict[str, str]):
        self.fields = dict(fields)
        summary = ", ".join(f"{name}: {msg}" for name, msg in self.fields.items())
        super().__init__(summary or "Invalid export request")


class ExportBusyError(ExportError):
    """An export is already being submitted or running for this job."""


class ExportServiceError(ExportError):
    """The Export Service could not be reached or returned an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class JobNotFoundError(ExportServiceError):
    def __init__(self, job_id: str, message: Optional[str] = None):
        super().__init__(message or f"Job {job_id} not found", status_code=404)
        self.job_id = job_id


class ExportRequestRejected(ExportServiceError):
    """The service refused the request (4xx)."""


class ExportServiceUnavailable(ExportServiceError):
    """5xx responses, timeouts and connection failures."""
