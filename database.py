"""
Database setup and listing operations for SQLite and PostgreSQL.
"""

import logging
from typing import Optional, List, Dict, Any

from sqlalchemy import create_engine, func, or_, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError

from models import Base, ListingModel, STATUS_ACTIVE, GEOHASH_PRECISIONS
from config import get_db_path
from config import is_production, get_database_url, SEARCH_QUERY_TIMEOUT_S
from api.services.geohash import geohash_keys

logger = logging.getLogger(__name__)


def postgres_connect_args(timeout_s: Optional[float] = SEARCH_QUERY_TIMEOUT_S) -> Dict[str, Any]:
    """libpq options that make the server abort a search query once its attempt has timed out."""
    if not timeout_s:
        return {}
    return {"options": f"-c statement_timeout={int(timeout_s * 1000)}"}


class Database:
    """Database manager for SQLite and PostgreSQL operations."""

    def __init__(
        self,
        db_path: Optional[str] = None,
        database_url: Optional[str] = None,
        statement_timeout_s: Optional[float] = SEARCH_QUERY_TIMEOUT_S,
    ):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database (used in development mode)
            database_url: PostgreSQL connection URL (used in production mode)
            statement_timeout_s: Server-side query timeout for PostgreSQL (None disables)
        """

        if is_production():
            # Production mode: use PostgreSQL
            db_url = database_url or get_database_url()
            if not db_url:
                raise ValueError(
                    "Production mode requires PostgreSQL configuration. "
                    "Please set DB_HOST, DB_USER, DB_PASSWORD, and DB_NAME environment variables."
                )
            logger.info("Connecting to PostgreSQL database (production mode)")
            self.db_type = "postgresql"
            self.db_path = None
            self.engine = create_engine(
                db_url,
                echo=False,
                pool_pre_ping=True,  # Verify connections before using
                pool_size=5,
                max_overflow=10,
                connect_args=postgres_connect_args(statement_timeout_s),
            )
        else:
            # Development mode: use SQLite
            self.db_path = db_path or get_db_path()
            self.db_type = "sqlite"
            logger.info(
                f"Connecting to SQLite database at {self.db_path} (development mode)"
            )
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={
                    "check_same_thread": False,
                    "timeout": 30.0,  # count, list and map queries read concurrently
                },
                pool_pre_ping=True,
            )
            self._enable_wal_mode()

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    def _enable_wal_mode(self):
        """Enable WAL (Write-Ahead Logging) mode for concurrent SQLite readers."""
        if self.db_type != "sqlite":
            return

        try:
            with self.engine.connect() as conn:
                conn.execute(text("PRAGMA journal_mode=WAL"))
                conn.execute(text("PRAGMA synchronous=NORMAL"))
                conn.execute(text("PRAGMA temp_store=memory"))
            logger.debug("Enabled WAL mode for SQLite database")
        except SQLAlchemyError as e:
            logger.warning(f"Could not enable WAL mode: {e}")

    def create_tables(self):
        """Create all database tables."""
        try:
            Base.metadata.create_all(bind=self.engine)
            if self.db_type == "sqlite":
                logger.info(f"Database tables created successfully in {self.db_path}")
            else:
                logger.info("Database tables created successfully in PostgreSQL")
        except SQLAlchemyError as e:
            logger.error(f"Error creating database tables: {e}")
            raise

    def get_session(self) -> Session:
        """Get a database session."""
        return self.SessionLocal()

    def close(self):
        """Close database connection."""
        self.engine.dispose()


class ListingRepository:
    """Repository for listing writes used by seeding and maintenance jobs."""

    def __init__(self, session: Session):
        self.session = session

    def add_listing(self, **fields: Any) -> ListingModel:
        """Insert a listing, deriving its geohash keys from lat/lng when not given."""
        keys = geohash_keys(fields.get("lat"), fields.get("lng"))
        for column, value in keys.items():
            fields.setdefault(column, value)
        fields.setdefault("status", STATUS_ACTIVE)
        listing = ListingModel(**fields)
        self.session.add(listing)
        self.session.flush()  # Get the ID
        return listing

    def count_active(self) -> int:
        """Count searchable listings."""
        return (
            self.session.query(func.count(ListingModel.id))
            .filter(
                ListingModel.status == STATUS_ACTIVE,
                ListingModel.lat.isnot(None),
                ListingModel.lng.isnot(None),
            )
            .scalar()
        )

    def geohash_backfill_progress(self) -> Dict[str, int]:
        """Pending/completed counts for listings missing precomputed geohash keys."""
        with_coords = self.session.query(func.count(ListingModel.id)).filter(
            ListingModel.lat.isnot(None), ListingModel.lng.isnot(None)
        )
        pending = with_coords.filter(self._missing_keys_clause()).scalar()
        total = self.session.query(func.count(ListingModel.id)).scalar()
        return {
            "pending": pending,
            "completed": with_coords.scalar() - pending,
            "total": total,
        }

    def backfill_geohash_batch(self, batch_size: int = 10000) -> int:
        """Compute geohash keys for one batch of listings missing them.

        Returns:
            Number of listings updated (0 once the backfill is complete)
        """
        try:
            batch: List[ListingModel] = (
                self.session.query(ListingModel)
                .filter(
                    ListingModel.lat.isnot(None),
                    ListingModel.lng.isnot(None),
                    self._missing_keys_clause(),
                )
                .order_by(ListingModel.id)
                .limit(batch_size)
                .all()
            )
            for listing in batch:
                for column, value in geohash_keys(listing.lat, listing.lng).items():
                    setattr(listing, column, value)
            self.session.flush()
            return len(batch)
        except SQLAlchemyError as e:
            logger.error(f"Error backfilling geohash keys: {e}")
            raise

    @staticmethod
    def _missing_keys_clause():
        return or_(
            *[
                getattr(ListingModel, f"geohash_{p}").is_(None)
                for p in GEOHASH_PRECISIONS
            ]
        )
