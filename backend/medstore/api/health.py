from fastapi import APIRouter, Depends
from sqlalchemy import text

from medstore.api.deps import get_payment_gateway, get_storage
from medstore.db import engine

router = APIRouter()


@router.get("/health", tags=["health"])
def health(gateway=Depends(get_payment_gateway), storage=Depends(get_storage)):
    db_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except Exception:
        db_ok = False
    payment_ok = gateway.health_check()
    storage_ok = storage.health_check()

    return {
        "status": "ok" if db_ok and payment_ok and storage_ok else "degraded",
        "db": db_ok,
        "payment_gateway": payment_ok,
        "storage": storage_ok,
    }
