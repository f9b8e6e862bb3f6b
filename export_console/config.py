import os
from dotenv import load_dotenv, find_dotenv

# Load environment variables
load_dotenv(find_dotenv(usecwd=True))

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

EXPORT_SERVICE_TOKEN = os.getenv("EXPORT_SERVICE_TOKEN")
POLL_INTERVAL_SECONDS = float(os.getenv("EXPORT_POLL_INTERVAL_SECONDS", "10"))
REQUEST_TIMEOUT_SECONDS = float(os.getenv("EXPORT_REQUEST_TIMEOUT_SECONDS", "30"))


def get_export_service_url() -> str:
    """
    Base URL of the export service.

    Raises:
        ValueError: If EXPORT_SERVICE_URL is not set
    """
    url = os.getenv("EXPORT_SERVICE_URL")
    if not url:
        raise ValueError("EXPORT_SERVICE_URL environment variable must be set")
    return url
