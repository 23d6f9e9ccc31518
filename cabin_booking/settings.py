import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
CALENDAR_CACHE_TTL = int(os.environ.get("CALENDAR_CACHE_TTL", "300"))

sendgrid_api_url = os.environ.get("SENDGRID_API_URL", "https://api.sendgrid.com")
sendgrid_api_key = os.environ.get("SENDGRID_API_KEY", "").strip()
sendgrid_from_email = os.environ.get("SENDGRID_FROM_EMAIL", "").strip()
skip_emails = os.environ.get("SKIP_EMAILS", "false").lower() in {"1", "true", "yes"}

log_level = os.environ.get("LOG_LEVEL", "INFO")
