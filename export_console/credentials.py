import logging
from typing import Optional

from huggingface_hub import get_token
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class HFCredentials(BaseModel):
    """Hugging Face credentials passed by value with a single export request."""

    hf_token: Optional[str] = None
    hf_repo_id: Optional[str] = None

    @classmethod
    def from_store(cls, hf_repo_id: Optional[str] = None) -> "HFCredentials":
        return cls(hf_token=read_hf_token(), hf_repo_id=hf_repo_id)


def read_hf_token() -> Optional[str]:
    """
    Read the user's Hugging Face token.

    Uses the HF_TOKEN environment variable or the token saved locally by
    ``huggingface-cli login``. The value is returned, never cached here.

    Returns:
        Optional[str]: The token, or None if the user has not set one up
    """
    token = get_token()
    if not token:
        logger.warning("HF Token not found. Hugging Face destinations will be unavailable.")
    return token
