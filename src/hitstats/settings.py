import os

DB_HOST = os.environ.get("HITSTATS_DB_HOST", "127.0.0.1")
DB_PORT = int(os.environ.get("HITSTATS_DB_PORT", "5432"))
DB_NAME = os.environ.get("HITSTATS_DB_NAME", "hitstats")
DB_USER = os.environ.get("HITSTATS_DB_USER", "hitstats_user")
DB_PASSWORD = os.environ.get("HITSTATS_DB_PASSWORD", "hitstats_password")

# Takes precedence over the individual DB_* settings when set
DSN = os.environ.get("HITSTATS_DSN")

LOG_LEVEL = os.environ.get("HITSTATS_LOG_LEVEL", "INFO")

# Chart defaults
DEFAULT_DAYS = int(os.environ.get("HITSTATS_DEFAULT_DAYS", "7"))
DAY_CHOICES = (1, 7, 30, 90, 365)
MAX_CHART_POINTS = 800
TOP_IMAGES_LIMIT = int(os.environ.get("HITSTATS_TOP_IMAGES_LIMIT", "10"))


def connect_kwargs() -> dict[str, str | int]:
    if DSN:
        return {"dsn": DSN}
    return {
        "host": DB_HOST,
        "port": DB_PORT,
        "database": DB_NAME,
        "user": DB_USER,
        "password": DB_PASSWORD,
    }
