import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from reconcile import CountryRecord
from schema import Country, RefreshMarker, MARKER_ID

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "capital",
    "region",
    "population",
    "currency_code",
    "exchange_rate",
    "estimated_gdp",
    "flag_url",
    "last_refreshed_at",
)

TOP_N = 5

STORAGE_FAILURE = "Database update failed"


@dataclass
class SummaryData:
    total: int
    top: List[Tuple[str, Optional[float]]] = field(default_factory=list)
    last_refreshed_at: Optional[datetime] = None


def apply_snapshot(
    session_factory: sessionmaker,
    records: Iterable[CountryRecord],
    refreshed_at: datetime,
) -> Tuple[bool, Optional[str]]:
    """Upsert every record by exact name and move the refresh marker.

    Everything happens in one transaction on one session: either the whole
    batch and the marker land, or nothing does. Returns (True, None) or
    (False, cause).
    """
    count = 0
    try:
        with session_factory() as session:
            with session.begin():
                existing = {c.name: c for c in session.query(Country)}
                for record in records:
                    row = existing.get(record.name)
                    if row is None:
                        row = Country(name=record.name)
                        session.add(row)
                        existing[record.name] = row
                    for attr in UPDATABLE_FIELDS:
                        setattr(row, attr, getattr(record, attr))
                    count += 1

                marker = session.get(RefreshMarker, MARKER_ID)
                if marker is None:
                    marker = RefreshMarker(id=MARKER_ID)
                    session.add(marker)
                marker.last_refreshed_at = refreshed_at
                session.flush()
    except SQLAlchemyError as e:
        logger.error("snapshot rolled back after %d records: %s", count, e)
        # driver text names tables and keys, so it stays in the log
        return False, STORAGE_FAILURE

    logger.info("snapshot committed: %d countries at %s", count, refreshed_at.isoformat())
    return True, None


def read_summary(session: Session, limit: int = TOP_N) -> SummaryData:
    total = session.query(func.count(Country.id)).scalar() or 0
    top = (
        session.query(Country.name, Country.estimated_gdp)
        # nulls rank lowest on every backend
        .order_by(Country.estimated_gdp.is_(None), Country.estimated_gdp.desc(), Country.name)
        .limit(limit)
        .all()
    )
    marker = session.get(RefreshMarker, MARKER_ID)
    return SummaryData(
        total=total,
        top=[(name, gdp) for name, gdp in top],
        last_refreshed_at=marker.last_refreshed_at if marker else None,
    )
