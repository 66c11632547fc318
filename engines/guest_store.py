"""
GUEST STORE - Booking Reads & Guest Set Persistence
===================================================
Responsibilities:
  1. Read a dataset's bookings (optionally within an arrival-date range)
  2. Rebuild a dataset's guest set as a new generation and swap it in
     within one transaction
  3. Serialise rebuilds of the same dataset with a per-dataset lock in
     process and a lock on its generation row across processes
  4. Read back the active generation (guest frame, directory, stays)
"""
import logging
import threading
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
from sqlalchemy import and_, delete, func, or_, select, update

from engines.models import Booking, Guest, GuestStay
from utils.db_utils import (
    bookings_table,
    execute_query,
    get_sqlalchemy_engine,
    guest_generations_table,
    guest_stays_table,
    guests_table,
    insert_rows,
)

logger = logging.getLogger(__name__)

GUEST_SORT_COLUMNS = (
    "name", "country", "total_bookings", "total_revenue", "average_spend",
    "rfm_score", "clv_score", "churn_risk_score", "last_booking_date",
    "first_booking_date", "loyalty_tier", "lifecycle_stage",
)

_GUEST_COLUMNS = [c for c in guests_table.columns if c.name not in ("row_id", "generation")]
_STAY_COLUMNS = [c for c in guest_stays_table.columns if c.name not in ("row_id", "generation")]


def like_pattern(text: str) -> str:
    """Substring LIKE pattern with %, _ and the escape character matched literally."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqlBookingSource:
    """Booking lookup backed by the bookings table."""

    def __init__(self, engine=None):
        self.engine = engine or get_sqlalchemy_engine()

    def get_bookings(self, dataset_id: str, start_date: Optional[date] = None,
                     end_date: Optional[date] = None) -> List[Booking]:
        query = select(bookings_table).where(bookings_table.c.dataset_id == dataset_id)
        if start_date is not None:
            query = query.where(bookings_table.c.arrival_date >= start_date)
        if end_date is not None:
            query = query.where(bookings_table.c.arrival_date <= end_date)
        query = query.order_by(bookings_table.c.id)

        df = execute_query(query, self.engine)
        logger.info(f"Read {len(df):,} bookings for dataset {dataset_id}")
        return [Booking.from_record(row) for row in df.to_dict("records")]


class SqlGuestStore:
    """
    Guest / GuestStay persistence with generation swap.

    Each dataset has one active generation in guest_generations. A rebuild
    writes generation N+1, repoints the dataset at it and deletes older
    rows, all in one transaction, so readers see either the old or the
    new guest set and never a partial one.
    """

    _locks: Dict[str, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, engine=None):
        self.engine = engine or get_sqlalchemy_engine()

    @classmethod
    def dataset_lock(cls, dataset_id: str) -> threading.Lock:
        with cls._locks_guard:
            return cls._locks.setdefault(dataset_id, threading.Lock())

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------

    @staticmethod
    def generation_query(dataset_id: str, for_update: bool = False):
        """SELECT of a dataset's active generation, optionally taking a row lock."""
        query = (
            select(guest_generations_table.c.generation)
            .where(guest_generations_table.c.dataset_id == dataset_id)
        )
        if for_update:
            # SQL Server ignores FOR UPDATE; the table hint takes the same lock there
            query = query.with_for_update().with_hint(
                guest_generations_table, "WITH (UPDLOCK, HOLDLOCK)", dialect_name="mssql")
        return query

    @classmethod
    def active_generation(cls, conn, dataset_id: str, for_update: bool = False) -> Optional[int]:
        return conn.execute(cls.generation_query(dataset_id, for_update)).scalar()

    @staticmethod
    def set_active_generation(conn, dataset_id: str, generation: int, previous: Optional[int]):
        if previous is None:
            conn.execute(guest_generations_table.insert(),
                         {"dataset_id": dataset_id, "generation": generation})
        else:
            conn.execute(
                update(guest_generations_table)
                .where(guest_generations_table.c.dataset_id == dataset_id)
                .values(generation=generation)
            )

    def _generation_for_write(self, conn, dataset_id: str) -> int:
        current = self.active_generation(conn, dataset_id)
        if current is None:
            self.set_active_generation(conn, dataset_id, 1, None)
            return 1
        return current

    # ------------------------------------------------------------------
    # Write capabilities (usable inside a caller's transaction)
    # ------------------------------------------------------------------

    def delete_guests(self, dataset_id: str, conn=None, keep_generation: Optional[int] = None) -> int:
        """Delete a dataset's guests and stays, except rows of keep_generation."""
        if conn is None:
            with self.engine.begin() as own:
                return self.delete_guests(dataset_id, own, keep_generation)

        removed = 0
        for table in (guest_stays_table, guests_table):
            stmt = delete(table).where(table.c.dataset_id == dataset_id)
            if keep_generation is not None:
                stmt = stmt.where(table.c.generation != keep_generation)
            removed += conn.execute(stmt).rowcount or 0
        return removed

    def insert_guests(self, guests: Sequence[Guest], conn=None, generation: Optional[int] = None) -> int:
        if not guests:
            return 0
        if conn is None:
            with self.engine.begin() as own:
                return self.insert_guests(guests, own, generation)
        if generation is None:
            generation = self._generation_for_write(conn, guests[0].dataset_id)
        rows = [dict(g.to_record(), generation=generation) for g in guests]
        return insert_rows(conn, "guests", rows)

    def insert_stays(self, stays: Sequence[GuestStay], conn=None, generation: Optional[int] = None) -> int:
        if not stays:
            return 0
        if conn is None:
            with self.engine.begin() as own:
                return self.insert_stays(stays, own, generation)
        if generation is None:
            generation = self._generation_for_write(conn, stays[0].dataset_id)
        rows = [dict(s.to_record(), generation=generation) for s in stays]
        return insert_rows(conn, "guest_stays", rows)

    def replace_guests(self, dataset_id: str, guests: Sequence[Guest],
                       stays: Sequence[GuestStay]) -> int:
        """
        Atomically replace a dataset's guest set.

        Returns
        -------
        int
            The new active generation.
        """
        with self.dataset_lock(dataset_id):
            with self.engine.begin() as conn:
                # the lock serialises swaps from other processes until commit
                previous = self.active_generation(conn, dataset_id, for_update=True)
                generation = (previous or 0) + 1
                self.insert_guests(guests, conn, generation)
                self.insert_stays(stays, conn, generation)
                self.set_active_generation(conn, dataset_id, generation, previous)
                removed = self.delete_guests(dataset_id, conn, keep_generation=generation)

        logger.info(f"Dataset {dataset_id}: generation {generation} active "
                    f"({len(guests):,} guests, {len(stays):,} stays, {removed:,} old rows removed)")
        return generation

    # ------------------------------------------------------------------
    # Reads (active generation only)
    # ------------------------------------------------------------------

    @staticmethod
    def _active_guests(dataset_id: str):
        return and_(
            guests_table.c.dataset_id == dataset_id,
            guests_table.c.generation == SqlGuestStore.generation_query(dataset_id).scalar_subquery(),
        )

    def get_guests(self, dataset_id: str) -> pd.DataFrame:
        query = (
            select(*_GUEST_COLUMNS)
            .where(self._active_guests(dataset_id))
            .order_by(guests_table.c.row_id)
        )
        return execute_query(query, self.engine)

    def list_guests(self, dataset_id: str, search: Optional[str] = None,
                    loyalty_tier: Optional[str] = None, lifecycle_stage: Optional[str] = None,
                    sort_by: str = "total_revenue", sort_order: str = "desc",
                    limit: int = 50, offset: int = 0) -> Tuple[List[dict], int]:
        """
        Paged guest directory.

        Parameters
        ----------
        search : str, optional
            Case-insensitive substring of the guest name.
        sort_by : str
            One of GUEST_SORT_COLUMNS.
        sort_order : str
            'asc' or 'desc'.

        Returns
        -------
        (list of dict, int)
            The page of guest rows and the total number of matches.
        """
        if sort_by not in GUEST_SORT_COLUMNS:
            raise ValueError(f"Unknown sort column: {sort_by}. Valid columns: {list(GUEST_SORT_COLUMNS)}")

        conditions = [self._active_guests(dataset_id)]
        if search:
            pattern = like_pattern(search.lower().strip())
            conditions.append(or_(guests_table.c.normalized_name.like(pattern, escape="\\"),
                                  func.lower(guests_table.c.country).like(pattern, escape="\\")))
        if loyalty_tier:
            conditions.append(guests_table.c.loyalty_tier == loyalty_tier)
        if lifecycle_stage:
            conditions.append(guests_table.c.lifecycle_stage == lifecycle_stage)

        column = guests_table.c[sort_by]
        ordering = column.asc() if sort_order.lower() == "asc" else column.desc()
        query = (
            select(*_GUEST_COLUMNS)
            .where(*conditions)
            .order_by(ordering, guests_table.c.normalized_name)
            .limit(limit)
            .offset(offset)
        )
        count_query = select(func.count()).select_from(guests_table).where(*conditions)

        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
            page = pd.read_sql(query, conn)
        page = page.astype(object).where(pd.notna(page), None)
        return page.to_dict("records"), total

    def get_guest_stays(self, guest_id: str) -> pd.DataFrame:
        active = (
            select(guest_generations_table.c.generation)
            .where(guest_generations_table.c.dataset_id == guest_stays_table.c.dataset_id)
            .scalar_subquery()
        )
        query = (
            select(*_STAY_COLUMNS)
            .where(guest_stays_table.c.guest_id == guest_id,
                   guest_stays_table.c.generation == active)
            .order_by(guest_stays_table.c.arrival_date)
        )
        return execute_query(query, self.engine)
