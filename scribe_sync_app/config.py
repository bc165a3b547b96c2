"""
Global configuration settings for the scribe-sync transcript engine.
"""
import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

# Paths
APP_DIR = pathlib.Path(__file__).parent.absolute()
DATA_DIR = pathlib.Path(os.environ.get("SCRIBE_SYNC_DATA_DIR", pathlib.Path.home() / ".scribe_sync_app"))
DB_PATH = DATA_DIR / "transcripts.db"

# Ensure data directory exists
DATA_DIR.mkdir(parents=True, exist_ok=True)

# Job runner (transcription proxy)
JOB_RUNNER_URL = os.environ.get("JOB_RUNNER_URL", "http://localhost:8000")
USER_EMAIL = os.environ.get("USER_EMAIL")

# Remote document store, local SQLite store is used when unset
DOCUMENT_STORE_URL = os.environ.get("DOCUMENT_STORE_URL")
DOCUMENT_STORE_TOKEN = os.environ.get("DOCUMENT_STORE_TOKEN")

HTTP_TIMEOUT_S = float(os.environ.get("HTTP_TIMEOUT_S", "30"))

# Transcription engine defaults sent with every job
DEFAULT_ENGINE = "stable-whisper"
DEFAULT_MODEL = "ivrit-ai/whisper-large-v3-turbo-ct2"
DEFAULT_LANGUAGE = os.environ.get("DEFAULT_LANGUAGE", "he")

# Timing
POLL_INTERVAL_MS = int(os.environ.get("POLL_INTERVAL_MS", "6000"))
SAVE_DEBOUNCE_MS = int(os.environ.get("SAVE_DEBOUNCE_MS", "1500"))
MAX_POLL_DURATION_S = float(os.environ.get("MAX_POLL_DURATION_S", "7200"))  # 0 = poll forever

# Threading configuration
MAX_WORKERS = int(os.environ.get("MAX_WORKERS", "2"))

# Speaker label used when the runner output carries none
UNKNOWN_SPEAKER = "UNKNOWN_SPEAKER"

# Status values for transcription records
class Status:
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
