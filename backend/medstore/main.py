import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from medstore.api.health import router as health_router
from medstore.api.routes_cart import router as cart_router
from medstore.api.routes_files import router as files_router
from medstore.api.routes_order import router as order_router
from medstore.api.routes_payment import router as payment_router
from medstore.api.routes_prescription import router as prescription_router
from medstore.api.routes_staff import router as staff_router
from medstore.config import settings
from medstore.db import SessionLocal, init_db
from medstore.errors import WorkflowError
from medstore.services.payment_service import PaymentService

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


def expire_job():
    db = SessionLocal()
    try:
        PaymentService(db).expire_stale()
    except Exception:
        log.exception("stale payment expiry failed")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    init_db(reset=settings.RESET_DB)

    scheduler = None
    if settings.PENDING_PAYMENT_TTL_SECONDS > 0:
        # cancel gateway orders that were never paid
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            expire_job,
            "interval",
            seconds=settings.EXPIRY_JOB_INTERVAL_SECONDS,
            id="expire_unpaid_orders",
        )
        scheduler.start()

    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)


app = FastAPI(title="MedStore - Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
def workflow_error_handler(request: Request, exc: WorkflowError):
    if exc.http_status >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(cart_router, tags=["cart"])

app.include_router(order_router, tags=["orders"])

app.include_router(payment_router, tags=["payments"])

app.include_router(prescription_router, tags=["prescriptions"])

app.include_router(staff_router, tags=["staff"])

app.include_router(files_router, tags=["files"])
