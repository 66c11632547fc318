"""
Database utility functions for the booking / guest store.
Handles the engine, table metadata, queries and batch inserts.
"""
import logging
from typing import Iterable, List, Optional

import pandas as pd
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    text,
)

from utils.bucketing import parse_date
from config.db_config import (
    SQLALCHEMY_CONNECTION_STRING,
    TABLES,
    QUERY_TIMEOUT,
    BATCH_SIZE,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Table metadata
# ---------------------------------------------------------------------------

metadata = MetaData()

bookings_table = Table(
    TABLES["bookings"], metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("dataset_id", String(64), nullable=False, index=True),
    Column("booking_ref", String(64)),
    Column("guest_name", String(255)),
    Column("guest_country", String(64)),
    Column("arrival_date", Date),
    Column("departure_date", Date),
    Column("booking_date", Date),
    Column("adults", Integer),
    Column("children", Integer),
    Column("room_type", String(64)),
    Column("room_number", String(32)),
    Column("total_amount", Float),
    Column("adr", Float),
    Column("channel", String(64)),
    Column("market_segment", String(64)),
    Column("booking_status", String(32)),
    Column("is_cancelled", Boolean),
    Column("lead_time", Integer),
    Column("length_of_stay", Integer),
    Column("is_repeated_guest", Boolean),
    Column("previous_bookings", Integer),
    Column("booking_changes", Integer),
)

guests_table = Table(
    TABLES["guests"], metadata,
    Column("row_id", Integer, primary_key=True, autoincrement=True),
    Column("generation", Integer, nullable=False),
    Column("guest_id", String(36), nullable=False, index=True),
    Column("dataset_id", String(64), nullable=False, index=True),
    Column("name", String(255)),
    Column("normalized_name", String(255)),
    Column("country", String(64)),
    Column("first_booking_date", Date),
    Column("last_booking_date", Date),
    Column("total_bookings", Integer),
    Column("cancelled_bookings", Integer),
    Column("total_revenue", Float),
    Column("average_spend", Float),
    Column("recency_score", Integer),
    Column("frequency_score", Integer),
    Column("monetary_score", Integer),
    Column("rfm_score", Integer),
    Column("preferred_channel", String(64)),
    Column("preferred_room_type", String(64)),
    Column("avg_lead_time", Float),
    Column("avg_length_of_stay", Float),
    Column("weekend_ratio", Float),
    Column("cancellation_rate", Float),
    Column("modification_count", Integer),
    Column("lifecycle_stage", String(32)),
    Column("loyalty_tier", String(32)),
    Column("guest_type", String(32)),
    Column("travel_type", String(32)),
    Column("clv_score", Float),
    Column("churn_risk_score", Integer),
    Column("upsell_propensity", Integer),
    Column("retention_probability", Integer),
    Column("ambassador_score", Integer),
)

guest_stays_table = Table(
    TABLES["guest_stays"], metadata,
    Column("row_id", Integer, primary_key=True, autoincrement=True),
    Column("generation", Integer, nullable=False),
    Column("guest_id", String(36), nullable=False, index=True),
    Column("booking_id", String(64)),
    Column("dataset_id", String(64), nullable=False, index=True),
    Column("booking_ref", String(64)),
    Column("arrival_date", Date),
    Column("departure_date", Date),
    Column("room_type", String(64)),
    Column("channel", String(64)),
    Column("market_segment", String(64)),
    Column("revenue", Float),
    Column("adr", Float),
    Column("length_of_stay", Integer),
    Column("lead_time", Integer),
    Column("adults", Integer),
    Column("children", Integer),
    Column("party_size", Integer),
    Column("is_cancelled", Boolean),
    Column("is_weekend", Boolean),
)

# Active generation of each dataset's guest set
guest_generations_table = Table(
    TABLES["guest_generations"], metadata,
    Column("dataset_id", String(64), primary_key=True),
    Column("generation", Integer, nullable=False),
)

TABLE_OBJECTS = {
    "bookings": bookings_table,
    "guests": guests_table,
    "guest_stays": guest_stays_table,
    "guest_generations": guest_generations_table,
}


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def get_sqlalchemy_engine(url: Optional[str] = None):
    """Create and return a SQLAlchemy engine (default URL from config)."""
    url = url or SQLALCHEMY_CONNECTION_STRING
    if url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True,
                             connect_args={"timeout": QUERY_TIMEOUT, "check_same_thread": False})
    engine = create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
    )
    return engine


def create_schema(engine=None):
    """Create any missing store tables."""
    if engine is None:
        engine = get_sqlalchemy_engine()
    metadata.create_all(engine)
    logger.info(f"Schema ready: {', '.join(TABLES.values())}")


def get_table(table_key: str) -> Table:
    table = TABLE_OBJECTS.get(table_key)
    if table is None:
        raise ValueError(f"Unknown table key: {table_key}. Valid keys: {list(TABLES.keys())}")
    return table


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def read_table(table_key: str, engine=None, where_clause: str = None,
               params: dict = None) -> pd.DataFrame:
    """
    Read an entire table (or filtered subset) into a DataFrame.

    Parameters
    ----------
    table_key : str
        Key from config.db_config.TABLES (e.g. 'bookings').
    engine : sqlalchemy.Engine, optional
        Reuse an existing engine; one is created if not provided.
    where_clause : str, optional
        SQL WHERE clause (without the WHERE keyword), with :named
        placeholders bound from `params`.

    Returns
    -------
    pd.DataFrame
    """
    table_name = get_table(table_key).name

    if engine is None:
        engine = get_sqlalchemy_engine()

    query = f"SELECT * FROM {table_name}"
    if where_clause:
        query += f" WHERE {where_clause}"

    logger.info(f"Reading table {table_name} ...")
    with engine.connect() as conn:
        df = pd.read_sql(text(query), conn, params=params)
    logger.info(f"  -> {len(df)} rows, {len(df.columns)} columns")
    return df


def execute_query(query, engine=None, params: dict = None) -> pd.DataFrame:
    """Execute a SQL string or SQLAlchemy selectable and return a DataFrame."""
    if engine is None:
        engine = get_sqlalchemy_engine()
    if isinstance(query, str):
        query = text(query)
    with engine.connect() as conn:
        result = pd.read_sql(query, conn, params=params)
    return result


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def insert_rows(conn, table_key: str, rows: Iterable[dict]) -> int:
    """
    Insert row dicts in BATCH_SIZE executemany batches on an open
    connection. The caller owns the transaction.
    """
    table = get_table(table_key)
    rows = list(rows)
    for start in range(0, len(rows), BATCH_SIZE):
        conn.execute(table.insert(), rows[start:start + BATCH_SIZE])
    return len(rows)


def _clean_records(df: pd.DataFrame, table: Table) -> List[dict]:
    """DataFrame rows as dicts restricted to table columns, NaN -> None."""
    subset = df[[c for c in df.columns if c in table.columns]]
    subset = subset.astype(object).where(pd.notna(subset), None)
    for column in subset.columns:
        if isinstance(table.columns[column].type, Date):
            subset[column] = subset[column].map(parse_date)
    return subset.to_dict("records")


def insert_dataframe(df: pd.DataFrame, table_key: str, engine=None) -> int:
    """
    Append a DataFrame to a store table. Columns the table does not
    define are dropped.

    Parameters
    ----------
    df : pd.DataFrame
    table_key : str
    engine : sqlalchemy.Engine, optional
    """
    table = get_table(table_key)

    if engine is None:
        engine = get_sqlalchemy_engine()

    logger.info(f"Inserting {len(df)} rows into {table.name} ...")
    records = _clean_records(df, table)
    with engine.begin() as conn:
        count = insert_rows(conn, table_key, records)
    logger.info(f"  -> Insert complete.")
    return count


def test_connection(engine=None) -> bool:
    """Test database connectivity. Returns True if successful."""
    try:
        if engine is None:
            engine = get_sqlalchemy_engine()
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            result.fetchone()
        logger.info("Database connection successful.")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
