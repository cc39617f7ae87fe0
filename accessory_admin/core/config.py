import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Firebase project (credentials path is a service-account JSON; unset = ADC)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
FIREBASE_CREDENTIALS = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")

# Reporting
REPORT_TIMEZONE = os.getenv("REPORT_TIMEZONE", "UTC")
ANALYTICS_MOCK_FALLBACK = _flag("ANALYTICS_MOCK_FALLBACK", "true")
CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "$")

# Admin sessions
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "__session")
SESSION_COOKIE_DAYS = int(os.getenv("SESSION_COOKIE_DAYS", "5"))  # Firebase caps this at 14
SESSION_COOKIE_SECURE = _flag("SESSION_COOKIE_SECURE", "true")

# Notification triggers
TRIGGER_SECRET = os.getenv("TRIGGER_SECRET")
NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "8080"))
BUILD_ID = os.getenv("BUILD_ID", "dev")
