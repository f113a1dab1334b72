import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent  # -> PUSH_BACKEND

# Load .env explicitly from project root
load_dotenv(BASE_DIR / ".env")


def _multiline(value: str | None) -> str | None:
    # Private keys are usually stored with escaped newlines in env files.
    if value is None:
        return None
    return value.replace("\\n", "\n")


class Settings:
    PROJECT_NAME = "Push Dispatch Backend"

    DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'push.db'}")

    API_SECRET = os.getenv("API_SECRET")

    RECIPIENT_STORE = os.getenv("RECIPIENT_STORE", "sql").strip().lower()
    RECIPIENTS_COLLECTION = os.getenv("RECIPIENTS_COLLECTION", "users")
    RECIPIENT_TOKENS_FIELD = os.getenv("RECIPIENT_TOKENS_FIELD", "fcmTokens")
    STORE_LOOKUP_BATCH_SIZE = int(os.getenv("STORE_LOOKUP_BATCH_SIZE", 10))
    STORE_PAGE_SIZE = int(os.getenv("STORE_PAGE_SIZE", 500))

    FIREBASE_CREDENTIALS_FILE = os.getenv("FIREBASE_CREDENTIALS_FILE")
    FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
    FIREBASE_CLIENT_EMAIL = os.getenv("FIREBASE_CLIENT_EMAIL")
    FIREBASE_PRIVATE_KEY = _multiline(os.getenv("FIREBASE_PRIVATE_KEY"))

    FCM_BASE_URL = os.getenv("FCM_BASE_URL", "https://fcm.googleapis.com/v1")
    PUSH_CHUNK_SIZE = int(os.getenv("PUSH_CHUNK_SIZE", 200))
    PUSH_REQUEST_TIMEOUT_SECONDS = float(os.getenv("PUSH_REQUEST_TIMEOUT_SECONDS", 10))

    cors_origins = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]


settings = Settings()
