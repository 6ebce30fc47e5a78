"""Health check endpoint with optional database connectivity check."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sharejoy.core.config import settings
from sharejoy.core.database import check_db_connected, get_db
from sharejoy.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(db: Session = Depends(get_db)) -> HealthResponse:
    """
    Return service health status and, when the database backend is configured,
    database connectivity.
    """
    db_status = None
    if settings.STORAGE_BACKEND == "database":
        db_status = "connected" if check_db_connected(db) else "disconnected"

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        storage=settings.STORAGE_BACKEND,
        database=db_status,
    )
