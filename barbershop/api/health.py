from fastapi import APIRouter
from barbershop.core.db import SessionLocal
from sqlalchemy import text
import redis
from barbershop.core.config import settings

router = APIRouter()

@router.get("")
def health_check():
    """Database and broker health"""
    health_status = {
        "status": "healthy",
        "version": "1.0.0",
        "services": {}
    }

    # Check database
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        health_status["services"]["database"] = "healthy"
    except Exception as e:
        health_status["services"]["database"] = f"unhealthy: {str(e)}"
        health_status["status"] = "degraded"

    # Check Redis (Celery broker)
    try:
        r = redis.from_url(settings.REDIS_URL, socket_connect_timeout=2)
        r.ping()
        health_status["services"]["redis"] = "healthy"
    except Exception as e:
        health_status["services"]["redis"] = f"unhealthy: {str(e)}"
        health_status["status"] = "degraded"

    return health_status
