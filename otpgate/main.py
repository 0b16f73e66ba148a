import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import APIRoute

from otpgate.config import ADMIN_EMAIL, ADMIN_PASSWORD, LOG_LEVEL, OTP_CLEANUP_INTERVAL_SECONDS
from otpgate.crud import crud
from otpgate.database import database
from otpgate.routers import admin_otp, auth, otp, user
from otpgate.models.models import User, OTPSession  # noqa: F401  registers tables
from otpgate.schemas.enums import UserRole
from otpgate.utils.cleanup import build_cleanup_scheduler
from otpgate.utils.security import hash_password

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def ensure_default_admin() -> None:
    db = database.SessionLocal()
    try:
        admin = crud.get_user_by_email(db, ADMIN_EMAIL)
        if not admin:
            db.add(User(
                name="Admin User",
                email=ADMIN_EMAIL,
                hashed_password=hash_password(ADMIN_PASSWORD),
                role=UserRole.ADMIN,
            ))
            db.commit()
            logger.info("Default admin created: %s", ADMIN_EMAIL)
        else:
            logger.info("Admin already exists: %s", ADMIN_EMAIL)
    finally:
        db.close()


# ---------------- Lifespan context ----------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles startup and shutdown events.
    Creates all tables, ensures a default admin exists, logs registered routes
    and runs the expired-session sweep on a timer until shutdown.
    """
    database.Base.metadata.create_all(bind=database.engine)
    ensure_default_admin()

    for route in app.routes:
        if isinstance(route, APIRoute):
            logger.debug("%-10s -> %s", ",".join(route.methods), route.path)

    scheduler = None
    if OTP_CLEANUP_INTERVAL_SECONDS > 0:
        scheduler = build_cleanup_scheduler(OTP_CLEANUP_INTERVAL_SECONDS)
        scheduler.start()
        logger.info("OTP cleanup scheduled every %ss", OTP_CLEANUP_INTERVAL_SECONDS)

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        logger.info("OTP cleanup scheduler stopped")


# ---------------- FastAPI instance ----------------
app = FastAPI(title="OTP transaction gate", lifespan=lifespan)

# ---------------- Include routers ----------------
app.include_router(auth.router)
app.include_router(user.router)
app.include_router(otp.router)
app.include_router(admin_otp.router)
