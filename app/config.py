import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./testra.db")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
# Web API key used for Identity Toolkit REST calls (sign-in, sign-up, password reset)
FIREBASE_API_KEY = os.getenv("FIREBASE_API_KEY")
IDENTITY_TOOLKIT_URL = os.getenv(
    "IDENTITY_TOOLKIT_URL", "https://identitytoolkit.googleapis.com/v1"
)

# Frontend base URL for redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
LOGIN_PATH = os.getenv("LOGIN_PATH", "/login")

# Session cookie - "Remember me" keeps it for SESSION_COOKIE_DAYS, otherwise browser-session only
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "testra_session")
SESSION_COOKIE_DAYS = int(os.getenv("SESSION_COOKIE_DAYS", "14"))
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "true").lower() == "true"

# Notifications older than this are purged by the nightly worker job
NOTIFICATION_RETENTION_DAYS = int(os.getenv("NOTIFICATION_RETENTION_DAYS", "30"))

# Retry policy for store writes issued from dashboard sessions
PERSISTENCE_RETRY_ATTEMPTS = int(os.getenv("PERSISTENCE_RETRY_ATTEMPTS", "3"))
PERSISTENCE_RETRY_DELAY = float(os.getenv("PERSISTENCE_RETRY_DELAY", "0.5"))
