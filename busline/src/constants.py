"""
Application configuration and constants for Busline Booking Server.

This module centralizes environment-based configuration, resource limits,
lock timeouts, background worker timings and other constants.

Configuration values can be overridden via environment variables.
"""

from os import environ


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "Busline Booking Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@busline.com")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "busline")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "busline-booking-server")
OPENOBSERVE_TIMEOUT = 5  # HTTP timeout (in seconds)


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# MinIO configuration
# ---------------------------------------------------------------------------
MINIO_HOST = environ.get("MINIO_HOST", "localhost")
MINIO_PORT = environ.get("MINIO_PORT", "9000")
MINIO_USERNAME = environ.get("MINIO_USERNAME", "minio")
MINIO_PASSWORD = environ.get("MINIO_PASSWORD", "password")
MINIO_SECURE = environ.get("MINIO_SECURE", "false").lower() == "true"
# Base URL under which uploaded objects are reachable (CDN or MinIO itself)
MINIO_PUBLIC_URL = environ.get(
    "MINIO_PUBLIC_URL", f"http://{MINIO_HOST}:{MINIO_PORT}"
).rstrip("/")

# MinIO buckets
BOOKING_QR_CODES = "booking-qr-codes"
QR_CODE_SIZE = 300  # Rendered QR code edge (in pixels)


# ---------------------------------------------------------------------------
# Resource upper limits
# ---------------------------------------------------------------------------
MAX_ACCOUNT_TOKENS = 5  # Maximum tokens per account
MAX_TOKEN_VALIDITY = 7 * 24 * 60 * 60  # Token validity (in seconds, 7 days)
MAX_SEATS_PER_BOOKING = 10  # Seats reservable in a single request
MAX_BUS_SEAT_COUNT = 120  # Seating capacity upper bound


# ---------------------------------------------------------------------------
# Regex constants (input validation)
# ---------------------------------------------------------------------------
REGEX_REGISTRATION_NUMBER = r"^[A-Z]{2,3}-?[0-9]{4}$"


# ---------------------------------------------------------------------------
# Booking transaction constants
# ---------------------------------------------------------------------------
BOOKING_LOCK_TIMEOUT = 5000  # PostgreSQL lock_timeout for seat locks (in ms)
SQLITE_BUSY_TIMEOUT = 30  # SQLite write lock wait (in seconds)


# ---------------------------------------------------------------------------
# Artifact retry worker constants
# ---------------------------------------------------------------------------
ARTIFACT_RETRY_DELAY = 5 * 60  # Age before a missing artifact is retried (in seconds)
ARTIFACT_RETRY_INTERVAL = 60  # Sleep between worker passes (in seconds)
ARTIFACT_RETRY_BATCH = 100  # Max bookings handled per pass


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = 10  # Lock timeout (in seconds)
MUTEX_LOCK_MAX_WAIT_TIME = 60  # Max blocking wait time (in seconds)
