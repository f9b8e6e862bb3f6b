from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError
from typing import Dict, Literal, Optional, List
from datetime import datetime

from .errors import ExportValidationError

export_type = Literal["adapter", "merged", "gguf"]
export_status = Literal["running", "completed", "failed"]
export_variant = Literal["raw", "file", "hf"]
export_destination = Literal["gcs", "hf_hub"]

EXPORT_TYPES = ("adapter", "merged", "gguf")
EXPORT_DESTINATIONS = ("gcs", "hf_hub")

# Destination selected by the user -> artifact variant the job records it under
DESTINATION_VARIANTS = {"gcs": "file", "hf_hub": "hf"}


class ExportArtifact(BaseModel):
    type: export_type
    path: str
    variant: export_variant


class ExportAttempt(BaseModel):
    """Snapshot of the most recent export attempt (``latest_export``)."""

    export_id: str
    job_id: str
    type: export_type
    status: export_status
    message: Optional[str] = None
    artifacts: List[ExportArtifact] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.status == "running"


class JobArtifactsFiles(BaseModel):
    adapter: Optional[str] = None
    merged: Optional[str] = None
    gguf: Optional[str] = None


class JobArtifactsRaw(BaseModel):
    adapter: Optional[str] = None
    merged: Optional[str] = None


class JobArtifactsHF(BaseModel):
    adapter: Optional[str] = None
    merged: Optional[str] = None
    gguf: Optional[str] = None


class JobArtifacts(BaseModel):
    file: JobArtifactsFiles = Field(default_factory=JobArtifactsFiles)
    raw: JobArtifactsRaw = Field(default_factory=JobArtifactsRaw)
    hf: JobArtifactsHF = Field(default_factory=JobArtifactsHF)

    def merged_with(self, previous: Optional["JobArtifacts"]) -> "JobArtifacts":
        """
        Combine these artifacts with a previously known set.

        A location already known in ``previous`` is kept when this set no
        longer reports it, so the client view of artifacts only grows.

        Args:
            previous: Artifacts currently held by the client, if any

        Returns:
            JobArtifacts: The combined artifacts
        """
        if previous is None:
            return self.model_copy(deep=True)

        combined = {}
        for variant in ("file", "raw", "hf"):
            incoming = getattr(self, variant).model_dump()
            known = getattr(previous, variant).model_dump()
            combined[variant] = {
                name: incoming.get(name) or known.get(name) for name in incoming
            }
        return JobArtifacts(**combined)


class ExportJob(BaseModel):
    """
    A trained job as seen by the export view: base metadata, the exported
    artifacts, and the latest export attempt if there was one.
    """

    job_id: str
    job_name: Optional[str] = None
    base_model_id: str
    modality: Optional[Literal["text", "vision"]] = "text"
    artifacts: JobArtifacts = Field(default_factory=JobArtifacts)
    latest_export: Optional[ExportAttempt] = None

    @field_validator("artifacts", mode="before")
    @classmethod
    def _pad_artifacts(cls, value):
        # Older job documents carry no artifacts at all
        return value if value is not None else {}

    @property
    def provider(self) -> Literal["unsloth", "huggingface"]:
        if self.base_model_id.startswith("unsloth/"):
            return "unsloth"
        return "huggingface"

    @property
    def is_exporting(self) -> bool:
        return self.latest_export is not None and self.latest_export.is_running

    def export_path(
        self, export_type: export_type, destination: export_destination
    ) -> Optional[str]:
        """
        Location of an exported artifact.

        Args:
            export_type: Artifact form ("adapter", "merged" or "gguf")
            destination: Where it was delivered ("gcs" or "hf_hub")

        Returns:
            Optional[str]: GCS path or HF repo id, None if not exported yet
        """
        variant = DESTINATION_VARIANTS.get(destination)
        if variant is None:
            return None
        return getattr(getattr(self.artifacts, variant), export_type, None)

    def is_export_available(
        self, export_type: export_type, destination: export_destination
    ) -> bool:
        return bool(self.export_path(export_type, destination))


class ExportJobSummary(BaseModel):
    job_id: str
    job_name: Optional[str] = None
    base_model_id: str
    modality: Optional[Literal["text", "vision"]] = "text"
    artifacts: Optional[JobArtifacts] = None


class ExportRequest(BaseModel):
    job_id: str = Field(min_length=1)
    export_type: export_type
    destination: List[export_destination] = Field(min_length=1)
    # Validated against destination, so these must stay after it
    hf_token: Optional[str] = Field(default=None, validate_default=True)
    hf_repo_id: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("destination")
    @classmethod
    def _dedupe_destination(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @field_validator("hf_token", "hf_repo_id")
    @classmethod
    def _require_hf_credentials(
        cls, value: Optional[str], info: ValidationInfo
    ) -> Optional[str]:
        if "hf_hub" in (info.data.get("destination") or []):
            if not value or not value.strip():
                raise PydanticCustomError(
                    "hf_credentials_required",
                    "{field} is required when hf_hub destination is selected",
                    {"field": info.field_name},
                )
        return value


class ExportAck(BaseModel):
    success: bool = True
    message: Optional[str] = None
    export_id: Optional[str] = None


def build_export_request(
    job_id: str,
    export_type: str,
    destination: List[str],
    hf_token: Optional[str] = None,
    hf_repo_id: Optional[str] = None,
) -> ExportRequest:
    """
    Validate user input into an ExportRequest.

    Args:
        job_id: Training job to export
        export_type: Artifact form to produce
        destination: Where to deliver the artifact
        hf_token: Hugging Face token, required for "hf_hub"
        hf_repo_id: Hugging Face repo id, required for "hf_hub"

    Returns:
        ExportRequest: The validated request

    Raises:
        ExportValidationError: With one message per offending field
    """
    try:
        return ExportRequest(
            job_id=job_id,
            export_type=export_type,
            destination=destination,
            hf_token=hf_token,
            hf_repo_id=hf_repo_id,
        )
    except ValidationError as e:
        fields: Dict[str, str] = {}
        for error in e.errors():
            field = str(error["loc"][0]) if error["loc"] else "__root__"
            fields.setdefault(field, error["msg"])
        raise ExportValidationError(fields)
