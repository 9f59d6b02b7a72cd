"""
FastAPI backend for the unified property search API.
"""

import time
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
import logging


from database import Database
from config import set_db_instance, get_db_instance, is_production, ENVIRONMENT
from api.routes import search
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize database
# Set ENVIRONMENT=production to use PostgreSQL, or leave unset/default to use SQLite
db_instance = Database()
logger.info(f"Database instance created: {db_instance}")
db_instance.create_tables()
set_db_instance(db_instance)

app = FastAPI(
    title="Property Search API",
    description="Unified map and list search over active property listings",
    version="1.0.0",
)


# Log each request method, path, and running time
class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.2f ms request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            response.headers.get("X-Request-ID", "-"),
        )
        return response


app.add_middleware(RequestTimingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when allow_origins=["*"]
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

app.include_router(search.router, prefix="/api/search", tags=["search"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Property Search API", "version": "1.0.0", "docs": "/docs"}


@app.get("/health")
async def health():
    """Health check endpoint with environment and database connection info."""
    try:
        db = get_db_instance()
    except RuntimeError as e:
        return {
            "status": "error",
            "environment": "production" if is_production() else "development",
            "environment_variable": ENVIRONMENT,
            "database": {
                "connected": False,
                "error": f"Failed to get database instance: {str(e)}",
            },
        }

    db_connected = False
    db_error = None
    session = db.get_session()
    try:
        session.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        db_error = str(e)
    finally:
        session.close()

    db_info = {"type": db.db_type, "connected": db_connected}
    if db.db_type == "sqlite":
        db_info["path"] = db.db_path
    if db_error:
        db_info["error"] = db_error

    return {
        "status": "healthy" if db_connected else "unhealthy",
        "environment": "production" if is_production() else "development",
        "environment_variable": ENVIRONMENT,
        "database": db_info,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
