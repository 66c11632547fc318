"""
Database configuration for the booking / guest store.
Set ANALYTICS_DB_URL to any SQLAlchemy URL, or the DB_* variables for
MS SQL Server. Without either, a local SQLite file is used.
"""
import os
from urllib.parse import quote_plus

# ---------------------------------------------------------------------------
# Connection settings
# Override via environment variables (a .env file is loaded by main.py).
# ---------------------------------------------------------------------------

ANALYTICS_DB_URL = os.getenv("ANALYTICS_DB_URL", "")
SQLITE_PATH = os.getenv("ANALYTICS_SQLITE_PATH", "hotel_analytics.db")

DB_SERVER = os.getenv("DB_SERVER", "")
DB_DATABASE = os.getenv("DB_DATABASE", "HotelAnalytics")
DB_USERNAME = os.getenv("DB_USERNAME", "")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_DRIVER = os.getenv("DB_DRIVER", "ODBC Driver 17 for SQL Server")
DB_PORT = int(os.getenv("DB_PORT", "1433"))

# pyodbc connection string (used as passthrough for SQLAlchemy)
PYODBC_CONNECTION_STRING = (
    f"DRIVER={{{DB_DRIVER}}};"
    f"SERVER={DB_SERVER},{DB_PORT};"
    f"DATABASE={DB_DATABASE};"
    f"UID={DB_USERNAME};"
    f"PWD={DB_PASSWORD};"
    f"TrustServerCertificate=yes;"
)


def resolve_connection_url() -> str:
    """Pick the store URL: explicit URL, then SQL Server, then SQLite."""
    if ANALYTICS_DB_URL:
        return ANALYTICS_DB_URL
    if DB_SERVER:
        return f"mssql+pyodbc:///?odbc_connect={quote_plus(PYODBC_CONNECTION_STRING)}"
    return f"sqlite:///{SQLITE_PATH}"


SQLALCHEMY_CONNECTION_STRING = resolve_connection_url()

# ---------------------------------------------------------------------------
# Table names
# ---------------------------------------------------------------------------
TABLES = {
    "bookings": "bookings",
    "guests": "guests",
    "guest_stays": "guest_stays",
    "guest_generations": "guest_generations",
}

# ---------------------------------------------------------------------------
# Query settings
# ---------------------------------------------------------------------------
QUERY_TIMEOUT = 120  # seconds
BATCH_SIZE = 5000    # rows per batch for large inserts
