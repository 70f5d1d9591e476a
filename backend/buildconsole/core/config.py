"""Application configuration loaded from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings:
    # SQLite DB URL backing the document store
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'buildconsole.db'}"
    )

    # Single implicit tenant; every store path lives under users/{TENANT_ID}
    TENANT_ID: str = os.getenv("TENANT_ID", "pixar-pro-default-user")

    # API server
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "logs/buildconsole.log")

    # CORS
    CORS_ORIGINS: list[str] = [
        o.strip()
        for o in os.getenv(
            "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
        ).split(",")
    ]

    # Folder watched for JSON backups to restore
    BACKUP_INBOX: str = os.getenv("BACKUP_INBOX", str(BASE_DIR / "data" / "backup_inbox"))
    WATCHER_ENABLED: bool = os.getenv("WATCHER_ENABLED", "true").lower() == "true"
    # Watcher poll interval (seconds) – used on platforms where inotify is unavailable
    WATCHER_POLL_INTERVAL: int = int(os.getenv("WATCHER_POLL_INTERVAL", "5"))

    # Outbound write journal
    WRITE_RETRIES: int = int(os.getenv("WRITE_RETRIES", "3"))
    WRITE_BACKOFF_SECONDS: float = float(os.getenv("WRITE_BACKOFF_SECONDS", "0.5"))

    ESTIMATE_NUMBER_PREFIX: str = os.getenv("ESTIMATE_NUMBER_PREFIX", "EST")

    # Largest accepted company logo, in bytes of decoded image data
    MAX_LOGO_BYTES: int = int(os.getenv("MAX_LOGO_BYTES", str(2 * 1024 * 1024)))

    def __init__(self):
        Path(self.BACKUP_INBOX).mkdir(parents=True, exist_ok=True)


settings = Settings()
