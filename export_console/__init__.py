from .client import ExportServiceClient, client_from_env
from .controller import (
    Banner,
    ControllerState,
    ExportLifecycleController,
    Notification,
)
from .credentials import HFCredentials, read_hf_token
from .errors import (
    ExportBusyError,
    ExportError,
    ExportRequestRejected,
    ExportServiceError,
    ExportServiceUnavailable,
    ExportValidationError,
    JobNotFoundError,
)
from .scheduler import PollScheduler
from .schema import (
    ExportAck,
    ExportAttempt,
    ExportJob,
    ExportJobSummary,
    ExportRequest,
    JobArtifacts,
    build_export_request,
)

__all__ = [
    "Banner",
    "ControllerState",
    "ExportAck",
    "ExportAttempt",
    "ExportBusyError",
    "ExportError",
    "ExportJob",
    "ExportJobSummary",
    "ExportLifecycleController",
    "ExportRequest",
    "ExportRequestRejected",
    "ExportServiceClient",
    "ExportServiceError",
    "ExportServiceUnavailable",
    "ExportValidationError",
    "HFCredentials",
    "JobArtifacts",
    "JobNotFoundError",
    "Notification",
    "PollScheduler",
    "build_export_request",
    "client_from_env",
    "read_hf_token",
]
