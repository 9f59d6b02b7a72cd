"""
Read-only point store over the listings table.

Each operation takes the same SearchPredicate and runs in its own session on a
worker thread so the search service can fan them out concurrently.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from api.errors import UpstreamQueryError
from api.schemas import ListItem
from api.services.spatial_filter import SearchPredicate
from database import Database
from models import ListingModel, geohash_column

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PointStore:
    """Exact counts, ordered pages and bounded raw point fetches under one predicate."""

    def __init__(self, db: Database):
        self.db = db

    async def count(self, predicate: SearchPredicate) -> int:
        """Exact number of listings matching the predicate."""

        def work(session: Session) -> int:
            query = predicate.apply(session.query(func.count(ListingModel.id)))
            return int(query.scalar() or 0)

        return await self._run(work, "count")

    async def fetch_page(
        self, predicate: SearchPredicate, page: int, limit: int
    ) -> List[ListItem]:
        """One page of matching listings, most recent first."""

        def work(session: Session) -> List[ListItem]:
            offset = (page - 1) * limit
            rows = (
                predicate.apply(session.query(ListingModel))
                .order_by(ListingModel.created_at.desc(), ListingModel.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [ListItem.model_validate(row) for row in rows]

        return await self._run(work, "list")

    async def fetch_points(
        self, predicate: SearchPredicate, limit: int, precision: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Bounded fetch of raw points for the map.

        Args:
            predicate: Shared search predicate
            limit: Maximum number of points returned
            precision: When given, each point carries its geohash key at this
                precision under "geohash"

        Returns:
            List of point dictionaries ordered by id
        """
        columns = [
            ListingModel.id,
            ListingModel.lat,
            ListingModel.lng,
            ListingModel.price,
            ListingModel.listing_type,
            ListingModel.property_type,
            ListingModel.title,
        ]
        if precision is not None:
            columns.append(geohash_column(precision).label("geohash"))

        def work(session: Session) -> List[Dict[str, Any]]:
            rows = (
                predicate.apply(session.query(*columns))
                .order_by(ListingModel.id)
                .limit(limit)
                .all()
            )
            return [dict(row._mapping) for row in rows]

        return await self._run(work, "map")

    async def _run(self, work: Callable[[Session], T], label: str) -> T:
        return await asyncio.to_thread(self._execute, work, label)

    def _execute(self, work: Callable[[Session], T], label: str) -> T:
        session = self.db.get_session()
        start = time.perf_counter()
        try:
            result = work(session)
            logger.debug(
                f"{label} query took {(time.perf_counter() - start) * 1000:.2f} ms"
            )
            return result
        except (OperationalError, DisconnectionError) as e:
            logger.warning(f"Transient {label} query failure: {e}")
            raise UpstreamQueryError(
                f"{label} query failed: {e}", retryable=True
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"{label} query failed: {e}")
            raise UpstreamQueryError(f"{label} query failed: {e}") from e
        finally:
            session.close()
