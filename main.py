"""
MAIN ORCHESTRATOR
==================
Computes the analytics snapshot for a booking dataset and optionally
rebuilds the dataset's guest profiles.

Usage:
    python main.py --dataset-id hotel-a                       # Snapshot only
    python main.py --dataset-id hotel-a --extract-guests      # Snapshot + guest rebuild
    python main.py --dataset-id hotel-a --start-date 2025-01-01 --end-date 2025-12-31
    python main.py --dataset-id hotel-a --output snapshot.json
    python main.py --init-db --dataset-id hotel-a --import-csv bookings.csv
"""
import argparse
import json
import logging
import os
import sys
import time
from datetime import date, datetime

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
LOG_DIR = "logs"
os.makedirs(LOG_DIR, exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    handlers=[
        logging.FileHandler(
            os.path.join(LOG_DIR, f"analytics_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")
        ),
        logging.StreamHandler(sys.stdout),
    ],
)
logger = logging.getLogger("orchestrator")

# ---------------------------------------------------------------------------
# Project root; .env must be loaded before the config modules are imported
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)
load_dotenv(os.path.join(PROJECT_ROOT, ".env"))

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from utils.db_utils import create_schema, get_sqlalchemy_engine, insert_dataframe, test_connection
from engines.analytics import AnalyticsService
from engines.guest_extraction import GuestExtractionError, GuestExtractionService
from engines.guest_store import SqlBookingSource


def _parse_cli_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD")


def import_bookings(csv_path: str, dataset_id: str, engine) -> int:
    """Load a CSV with store column names into the bookings table."""
    df = pd.read_csv(csv_path)
    df["dataset_id"] = dataset_id
    count = insert_dataframe(df, "bookings", engine)
    logger.info(f"Imported {count:,} bookings from {csv_path} into dataset {dataset_id}")
    return count


def run_analytics(dataset_id: str, start_date: date = None, end_date: date = None,
                  extract_guests: bool = False, output: str = None,
                  init_db: bool = False, import_csv: str = None) -> int:
    """
    Execute the analytics run.

    Returns
    -------
    int
        Process exit code (0 on success).
    """
    run_start = time.time()
    logger.info("=" * 70)
    logger.info("   HOTEL BOOKING ANALYTICS")
    logger.info(f"   Dataset: {dataset_id}")
    if start_date or end_date:
        logger.info(f"   Arrivals: {start_date or '...'} to {end_date or '...'}")
    logger.info("=" * 70)

    # ------------------------------------------------------------------
    # Database connection
    # ------------------------------------------------------------------
    engine = get_sqlalchemy_engine()
    if not test_connection(engine):
        logger.error("[ERROR] Database connection failed. Aborting.")
        return 1

    if init_db:
        create_schema(engine)
    if import_csv:
        import_bookings(import_csv, dataset_id, engine)

    # ------------------------------------------------------------------
    # STEP 1 -- Analytics snapshot
    # ------------------------------------------------------------------
    logger.info("\n" + "-" * 70)
    logger.info("  STEP 1: Analytics snapshot")
    logger.info("-" * 70)

    service = AnalyticsService(SqlBookingSource(engine))
    try:
        snapshot = service.get_analytics(dataset_id, start_date, end_date)
    except SQLAlchemyError as e:
        logger.error(f"[ERROR] Could not read bookings: {e}")
        return 1
    kpis = snapshot.core_kpis
    indicators = snapshot.performance_indicators
    logger.info(f"  Bookings: {kpis.total_bookings:,} ({kpis.cancelled_bookings:,} cancelled)")
    logger.info(f"  Revenue: {kpis.total_revenue:,.2f} | RevPAR: {kpis.rev_par:,.2f}")
    logger.info(f"  Position: {indicators.competitive_position_estimate}")
    for insight in indicators.actionable_insights:
        logger.info(f"    -> {insight}")

    if output:
        with open(output, "w") as fh:
            json.dump(snapshot.to_dict(), fh, indent=2, default=str)
        logger.info(f"  Snapshot written to {output}")

    # ------------------------------------------------------------------
    # STEP 2 -- Guest extraction
    # ------------------------------------------------------------------
    if extract_guests:
        logger.info("\n" + "-" * 70)
        logger.info("  STEP 2: Guest extraction")
        logger.info("-" * 70)

        extraction = GuestExtractionService(engine)
        try:
            result = extraction.extract_guests(dataset_id)
        except GuestExtractionError as e:
            logger.error(f"[ERROR] {e}")
            return 1
        logger.info(f"  Guests: {result.total_guests:,}, stays: {result.total_stays:,}")

        summary = extraction.get_guest_summary(dataset_id)
        if summary:
            s = summary["summary"]
            logger.info(f"  VIP: {s['vip_count']}, at risk: {s['at_risk_count']}, "
                        f"repeat rate: {s['repeat_rate']}%, avg CLV: {s['avg_clv']:,.2f}")

    elapsed = time.time() - run_start
    logger.info("\n" + "=" * 70)
    logger.info(f"   RUN COMPLETE in {elapsed:.1f}s")
    logger.info("=" * 70)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Hotel booking analytics and guest scoring"
    )
    parser.add_argument("--dataset-id", type=str, required=True,
                        help="Dataset whose bookings are analysed.")
    parser.add_argument("--start-date", type=_parse_cli_date, default=None,
                        help="Earliest arrival date (YYYY-MM-DD).")
    parser.add_argument("--end-date", type=_parse_cli_date, default=None,
                        help="Latest arrival date (YYYY-MM-DD).")
    parser.add_argument("--extract-guests", action="store_true",
                        help="Rebuild the dataset's guest profiles after the snapshot.")
    parser.add_argument("--output", type=str, default=None,
                        help="Write the snapshot as JSON to this file.")
    parser.add_argument("--init-db", action="store_true",
                        help="Create missing store tables first.")
    parser.add_argument("--import-csv", type=str, default=None,
                        help="Append bookings from a CSV into the dataset first.")
    args = parser.parse_args()

    sys.exit(run_analytics(
        dataset_id=args.dataset_id,
        start_date=args.start_date,
        end_date=args.end_date,
        extract_guests=args.extract_guests,
        output=args.output,
        init_db=args.init_db,
        import_csv=args.import_csv,
    ))


if __name__ == "__main__":
    main()
