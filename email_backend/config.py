"""
Global settings and constants for the mail backend.

Values are plain module attributes so that collaborators read them at the
point of use. Call load_env() once at startup to pull overrides from the
environment (and from a .env file, if present).
"""
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


# Storage
BASE_DIR: Path = Path.home() / ".email_backend"
SQLITE_DB_PATH: Path = BASE_DIR / "email_backend.db"
SECRET_KEY_FILE: Path = BASE_DIR / "secret.key"
LOG_DIR: Path = BASE_DIR / "logs"

# Auth
JWT_SECRET: str = "change-me"
JWT_ALGORITHM: str = "HS256"
ACCESS_TOKEN_MINUTES: int = 15
REFRESH_TOKEN_EXPIRY_DAYS: int = 7
PASSWORD_HASH_ITERATIONS: int = 390000

# Google OAuth / Gmail
GOOGLE_CLIENT_ID: Optional[str] = None
GOOGLE_CLIENT_SECRET: Optional[str] = None
GOOGLE_CALLBACK_URL: str = "http://localhost:3000/auth/google/callback"
GOOGLE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"
GMAIL_SCOPES: List[str] = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
]
GMAIL_PUBSUB_TOPIC: Optional[str] = None

# Object storage (S3 or MinIO)
AWS_REGION: str = "us-east-1"
AWS_S3_BUCKET: str = "email-attachments"
AWS_ACCESS_KEY_ID: Optional[str] = None
AWS_SECRET_ACCESS_KEY: Optional[str] = None
S3_ENDPOINT: Optional[str] = None

# Outbound SMTP relay for locally stored mail
SMTP_HOST: Optional[str] = None
SMTP_PORT: int = 587
SMTP_USER: Optional[str] = None
SMTP_PASSWORD: Optional[str] = None
SMTP_TIMEOUT: int = 30

# Mail handling
MAX_INLINE_ATTACHMENT_BYTES: int = 10 * 1024 * 1024  # 10 MB
PREVIEW_LENGTH: int = 100
DEFAULT_PAGE_SIZE: int = 50


def load_env() -> None:
    """
    Load settings from environment variables.

    Reads a .env file from the working directory first (existing environment
    variables win), then applies every recognised variable over the defaults
    above and makes sure the data directory exists.
    """
    global SQLITE_DB_PATH, SECRET_KEY_FILE, LOG_DIR
    global JWT_SECRET, ACCESS_TOKEN_MINUTES, REFRESH_TOKEN_EXPIRY_DAYS
    global GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_CALLBACK_URL, GMAIL_PUBSUB_TOPIC
    global AWS_REGION, AWS_S3_BUCKET, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, S3_ENDPOINT
    global SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD
    global MAX_INLINE_ATTACHMENT_BYTES

    load_dotenv()

    db_path_env = os.environ.get("SQLITE_DB_PATH")
    if db_path_env:
        SQLITE_DB_PATH = Path(db_path_env)
    key_file_env = os.environ.get("SECRET_KEY_FILE")
    if key_file_env:
        SECRET_KEY_FILE = Path(key_file_env)
    log_dir_env = os.environ.get("LOG_DIR")
    if log_dir_env:
        LOG_DIR = Path(log_dir_env)

    JWT_SECRET = os.environ.get("JWT_SECRET", JWT_SECRET)
    ACCESS_TOKEN_MINUTES = int(os.environ.get("ACCESS_TOKEN_MINUTES", ACCESS_TOKEN_MINUTES))
    REFRESH_TOKEN_EXPIRY_DAYS = int(
        os.environ.get("REFRESH_TOKEN_EXPIRY_DAYS", REFRESH_TOKEN_EXPIRY_DAYS)
    )

    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET")
    GOOGLE_CALLBACK_URL = os.environ.get("GOOGLE_CALLBACK_URL", GOOGLE_CALLBACK_URL)
    GMAIL_PUBSUB_TOPIC = os.environ.get("GMAIL_PUBSUB_TOPIC")

    AWS_REGION = os.environ.get("AWS_REGION", AWS_REGION)
    AWS_S3_BUCKET = os.environ.get("AWS_S3_BUCKET", AWS_S3_BUCKET)
    AWS_ACCESS_KEY_ID = os.environ.get("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY = os.environ.get("AWS_SECRET_ACCESS_KEY")
    S3_ENDPOINT = os.environ.get("S3_ENDPOINT")

    SMTP_HOST = os.environ.get("SMTP_HOST")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", SMTP_PORT))
    SMTP_USER = os.environ.get("SMTP_USER")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD")

    MAX_INLINE_ATTACHMENT_BYTES = int(
        os.environ.get("MAX_INLINE_ATTACHMENT_BYTES", MAX_INLINE_ATTACHMENT_BYTES)
    )

    SQLITE_DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def get_database_url() -> str:
    """
    Get the SQLite database URL.

    Example:
        >>> get_database_url()
        'sqlite:///Users/username/.email_backend/email_backend.db'
    """
    db_path_str = str(SQLITE_DB_PATH).replace("\\", "/")
    return f"sqlite:///{db_path_str}"
