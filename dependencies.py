"""
Shared dependencies for FastAPI routes.
"""

from config import get_db_instance
from api.services.point_store import PointStore
from api.services.search_service import SearchService


def get_search_service() -> SearchService:
    """Search service bound to the process-wide database instance."""
    return SearchService(PointStore(get_db_instance()))
