import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Literal, Optional

from .client import ExportServiceClient
from .credentials import HFCredentials
from .errors import (
    ExportBusyError,
    ExportServiceError,
    ExportValidationError,
    JobNotFoundError,
)
from .scheduler import PollScheduler
from .schema import ExportAck, ExportJob, ExportRequest, build_export_request

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0


class ControllerState(Enum):
    """Enum for export lifecycle states of one job"""

    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    NOT_FOUND = "not_found"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class Notification:
    level: Literal["success", "error", "info"]
    message: str


@dataclass(frozen=True)
class Banner:
    kind: Literal["pending", "running", "completed", "failed"]
    title: str
    message: str = ""
    spinner: bool = False


class ExportLifecycleController:
    """
    Client-side lifecycle of one job's exports.

    Tracks the job as last reported by the service, submits export requests
    with a single-flight guard and polls while an export is running. All
    service failures are turned into ``error`` and notifications; none of
    them propagate out of the public operations.
    """

    def __init__(
        self,
        job_id: str,
        client: ExportServiceClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        scheduler: Optional[PollScheduler] = None,
        on_notify: Optional[Callable[[Notification], None]] = None,
    ):
        """
        Initialize the controller.

        Args:
            job_id: Job whose exports are managed
            client: Client for the export service
            poll_interval: Seconds between the end of one status fetch and the next
            scheduler: Timer used for polling, a fresh PollScheduler by default
            on_notify: Callback receiving user-facing notifications
        """
        self.job_id = job_id
        self.client = client
        self.poll_interval = poll_interval
        self.scheduler = scheduler or PollScheduler()
        self.on_notify = on_notify

        self.state = ControllerState.IDLE
        self.job: Optional[ExportJob] = None
        self.error: Optional[str] = None
        self.field_errors: Dict[str, str] = {}
        self.polling_paused = False
        self.submitting_type: Optional[str] = None
        self.notifications: List[Notification] = []

        self._fetch_task: Optional[asyncio.Future] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def fetch_in_flight(self) -> bool:
        return self._fetch_task is not None and not self._fetch_task.done()

    def _notify(self, level: str, message: str):
        notification = Notification(level=level, message=message)
        self.notifications.append(notification)
        if self.on_notify:
            self.on_notify(notification)

    async def load(self) -> Optional[ExportJob]:
        """Initial fetch of the job when the view opens."""
        return await self.fetch_status()

    async def refresh(self) -> Optional[ExportJob]:
        """User-triggered fetch. Resumes polling paused by a failed fetch."""
        return await self.fetch_status()

    async def fetch_status(self) -> Optional[ExportJob]:
        """
        Fetch the job from the service and apply it.

        Concurrent callers share the fetch already in flight. An armed poll
        timer is cancelled before a new fetch goes out, and the next poll is
        armed only once this fetch has resolved with a running export.

        Returns:
            Optional[ExportJob]: The job after applying the response, None if
            the fetch failed or the controller was closed
        """
        if self._closed or self.state == ControllerState.NOT_FOUND:
            return None
        if self.state == ControllerState.SUBMITTING:
            logger.info(f"Status fetch for job {self.job_id} skipped while submitting")
            return self.job
        if self.fetch_in_flight:
            return await asyncio.shield(self._fetch_task)

        self.scheduler.cancel()
        self._fetch_task = asyncio.ensure_future(self._fetch_once())
        return await asyncio.shield(self._fetch_task)

    async def _fetch_once(self) -> Optional[ExportJob]:
        try:
            job = await self.client.get_job(self.job_id)
        except JobNotFoundError as e:
            if self._closed:
                return None
            logger.error(f"Job {self.job_id} not found: {e.message}")
            self.scheduler.cancel()
            self.state = ControllerState.NOT_FOUND
            self.error = e.message
            return None
        except ExportServiceError as e:
            if self._closed:
                return None
            logger.error(f"Failed to fetch export status for job {self.job_id}: {e.message}")
            self.error = e.message
            self._notify("error", f"Failed to fetch export job: {e.message}")
            # Polling stays paused until the user refreshes explicitly
            self.polling_paused = True
            return None

        if self._closed:
            logger.info(f"Discarding status for job {self.job_id} after close")
            return None

        self.error = None
        self.polling_paused = False
        self._apply(job)

        if self.state == ControllerState.SUBMITTING:
            # The submission will fetch again once it is acknowledged
            return self.job

        if self.job.is_exporting:
            self.state = ControllerState.POLLING
            self.scheduler.schedule(self.poll_interval, self.fetch_status)
        else:
            self.scheduler.cancel()
            self.state = ControllerState.IDLE
        return self.job

    def _apply(self, job: ExportJob) -> bool:
        """
        Apply a job fetched from the service.

        Returns:
            bool: False when the job was already up to date
        """
        previous = self.job
        artifacts = job.artifacts.merged_with(previous.artifacts if previous else None)
        job = job.model_copy(update={"artifacts": artifacts})
        if previous == job:
            return False

        self.job = job
        before = previous.latest_export if previous else None
        after = job.latest_export
        if after is None or after.is_running:
            return True

        if before is not None and before.is_running:
            if after.status == "completed":
                self._notify("success", f"{after.type.upper()} export completed")
            else:
                detail = f": {after.message}" if after.message else ""
                self._notify("error", f"{after.type.upper()} export failed{detail}")
        return True

    def validate(
        self,
        export_type: str,
        destination: List[str],
        credentials: Optional[HFCredentials] = None,
    ) -> ExportRequest:
        """
        Build a request for this job from user input.

        Raises:
            ExportValidationError: With one message per offending field
        """
        credentials = credentials or HFCredentials()
        return build_export_request(
            self.job_id,
            export_type,
            destination,
            hf_token=credentials.hf_token,
            hf_repo_id=credentials.hf_repo_id,
        )

    def _check_not_busy(self):
        if self._closed:
            raise ExportBusyError("Export view is closed")
        if self.state == ControllerState.NOT_FOUND:
            raise ExportBusyError(f"Job {self.job_id} not found")
        if self.state == ControllerState.SUBMITTING:
            raise ExportBusyError("An export request is already in flight for this job")
        if self.job is None:
            raise ExportBusyError(f"Export status of job {self.job_id} is not loaded")
        if self.job.is_exporting:
            raise ExportBusyError("An export is already running for this job")
        if self.state != ControllerState.IDLE:
            raise ExportBusyError(f"An export is already {self.state.value} for this job")
        if self.polling_paused:
            raise ExportBusyError("Export status is out of date, refresh before exporting")

    def can_submit(
        self,
        export_type: str,
        destination: List[str],
        credentials: Optional[HFCredentials] = None,
    ) -> bool:
        if self.job is None:
            return False
        try:
            self._check_not_busy()
            self.validate(export_type, destination, credentials)
        except (ExportBusyError, ExportValidationError):
            return False
        return True

    async def submit_export(
        self,
        export_type: str,
        destination: List[str],
        credentials: Optional[HFCredentials] = None,
    ) -> Optional[ExportAck]:
        """
        Submit an export request for this job.

        The request is validated locally first and sent at most once. On
        acceptance the job status is fetched immediately and polling starts.
        Credentials are used for this call only.

        Args:
            export_type: "adapter", "merged" or "gguf"
            destination: Non-empty subset of "gcs" and "hf_hub"
            credentials: Hugging Face token and repo id, needed for "hf_hub"

        Returns:
            Optional[ExportAck]: The service acknowledgment, None if the
            request was rejected locally or by the service
        """
        try:
            request = self.validate(export_type, destination, credentials)
        except ExportValidationError as e:
            logger.warning(f"Export request for job {self.job_id} is invalid: {e.message}")
            self.field_errors = e.fields
            return None
        self.field_errors = {}

        try:
            self._check_not_busy()
        except ExportBusyError as e:
            logger.warning(f"Export request for job {self.job_id} rejected: {e.message}")
            self.error = e.message
            return None

        self.state = ControllerState.SUBMITTING
        self.submitting_type = request.export_type
        self.error = None
        label = request.export_type.upper()

        try:
            ack = await self.client.submit_export(request)
        except ExportServiceError as e:
            if self._closed:
                return None
            logger.error(f"Failed to start {request.export_type} export for job {self.job_id}: {e.message}")
            self.submitting_type = None
            self.error = e.message
            self._notify("error", f"Failed to start {label} export: {e.message}")
            if self.state == ControllerState.SUBMITTING:
                self.state = ControllerState.IDLE
                if self.job is not None and self.job.is_exporting:
                    # A refresh during the submission saw another export running
                    self.state = ControllerState.POLLING
                    self.scheduler.schedule(self.poll_interval, self.fetch_status)
            return None

        if self._closed:
            return None

        logger.info(f"Export {ack.export_id} accepted for job {self.job_id}")
        self._notify("success", f"{label} export started")
        if self.fetch_in_flight:
            # A refresh sent before the submission may predate the new attempt,
            # so it must not move the state while still submitting
            await asyncio.wait({self._fetch_task})
            if self._closed or self.state == ControllerState.NOT_FOUND:
                return ack
        self.submitting_type = None
        self.state = ControllerState.POLLING
        await self.fetch_status()
        return ack

    def banner(self) -> Optional[Banner]:
        """Status banner for the export panel, None when there is nothing to show."""
        if self.state == ControllerState.SUBMITTING and self.submitting_type:
            return Banner(
                kind="pending",
                title="Pending",
                message=f"Exporting {self.submitting_type}",
                spinner=True,
            )
        if self.job is None or self.job.latest_export is None:
            return None

        latest = self.job.latest_export
        message = latest.message or ""
        if latest.status == "completed":
            return Banner(
                kind="completed",
                title=f"{latest.type.upper()} was exported in the most recent export job",
                message=message,
            )
        if latest.status == "failed":
            return Banner(
                kind="failed",
                title=f"Error occurred when exporting {latest.type}",
                message=message,
            )
        return Banner(
            kind="running", title=f"Exporting {latest.type}", message=message, spinner=True
        )

    async def wait_settled(self) -> None:
        """Wait until no status fetch is in flight and no poll is scheduled."""
        while not self._closed:
            if self.fetch_in_flight:
                await asyncio.wait({self._fetch_task})
            elif self.scheduler.active:
                await self.scheduler.join()
            else:
                return

    def close(self):
        """
        Tear the controller down. A pending poll is cancelled and any request
        still in flight has its result discarded when it resolves.
        """
        if self._closed:
            return
        self._closed = True
        self.scheduler.cancel()
        self.state = ControllerState.TERMINATED
        logger.info(f"Export controller for job {self.job_id} closed")
