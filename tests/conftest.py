import asyncio
from typing import Any, Dict, List, Optional

import pytest

from export_console.errors import ExportServiceError
from export_console.scheduler import PollScheduler
from export_console.schema import ExportAck, ExportJob, ExportRequest


def make_job(
    status: Optional[str] = None,
    export_type: str = "merged",
    export_id: str = "exp_1",
    message: Optional[str] = None,
    job_id: str = "tr_1",
    artifacts: Optional[Dict[str, Any]] = None,
) -> ExportJob:
    data: Dict[str, Any] = {
        "job_id": job_id,
        "job_name": "gemma support bot",
        "base_model_id": "unsloth/gemma-3-1b-it",
        "modality": "text",
        "artifacts": artifacts or {},
    }
    if status:
        data["latest_export"] = {
            "export_id": export_id,
            "job_id": job_id,
            "type": export_type,
            "status": status,
            "message": message,
            "started_at": "2025-01-01T00:00:00Z",
        }
    return ExportJob.model_validate(data)


class FakeExportClient:
    """Fake export service returning scripted job responses"""

    def __init__(self, jobs: Optional[List[Any]] = None, submit_error: Optional[Exception] = None):
        self.jobs = list(jobs or [])
        self.submit_error = submit_error
        self.get_calls = 0
        self.submitted: List[ExportRequest] = []
        self.submit_gate: Optional[asyncio.Event] = None
        self.get_gate: Optional[asyncio.Future] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        pass

    async def get_job(self, job_id: str) -> ExportJob:
        self.get_calls += 1
        if self.get_gate is not None:
            gate, self.get_gate = self.get_gate, None
            return await gate
        response = self.jobs.pop(0) if len(self.jobs) > 1 else self.jobs[0]
        if isinstance(response, ExportServiceError):
            raise response
        return response

    async def submit_export(self, request: ExportRequest) -> ExportAck:
        self.submitted.append(request)
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.submit_error is not None:
            raise self.submit_error
        return ExportAck(success=True, message="Export job exp_2 started successfully", export_id="exp_2")


class RecordingSleep:
    """Sleep replacement that records delays and returns on the next loop turn"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)
        await asyncio.sleep(0)


class BlockingSleep:
    """Sleep replacement that never returns unless cancelled"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)
        await asyncio.Event().wait()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def blocking_sleep():
    return BlockingSleep()


@pytest.fixture
def recording_scheduler(recording_sleep):
    return PollScheduler(sleep=recording_sleep)


@pytest.fixture
def blocking_scheduler(blocking_sleep):
    return PollScheduler(sleep=blocking_sleep)
