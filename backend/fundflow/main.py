import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fundflow.core.errors import install_error_handlers
from fundflow.core.settings import settings
from fundflow.db import Base, SessionLocal, engine, import_all_models

from fundflow.api.auth import router as auth_router
from fundflow.api.admin import router as admin_router
from fundflow.api.category import router as category_router
from fundflow.api.transfer import router as transfer_router
from fundflow.api.transaction import router as transaction_router
from fundflow.api.files import router as files_router
from fundflow.api.realtime import router as realtime_router
from fundflow.services.auth_bridge import purge_expired_tokens
from fundflow.services.users import ensure_bootstrap_admin

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("fundflow")

VERSION = "0.1.0"


def _startup() -> None:
    import_all_models()
    # em prod o schema vem do alembic
    if settings.ENV != "prod":
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        ensure_bootstrap_admin(
            db,
            settings.BOOTSTRAP_ADMIN_EMAIL,
            settings.BOOTSTRAP_ADMIN_PASSWORD,
            settings.BOOTSTRAP_ADMIN_NAME,
        )
        purged = purge_expired_tokens(db)
        if purged:
            logger.info("tokens revogados expirados removidos: %s", purged)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _startup()
    logger.info("%s %s iniciado (env=%s)", settings.APP_NAME, VERSION, settings.ENV)
    yield


app = FastAPI(title=settings.APP_NAME, version=VERSION, lifespan=lifespan)

install_error_handlers(app)

app.include_router(auth_router)
app.include_router(category_router)
app.include_router(transfer_router)
app.include_router(transaction_router)
app.include_router(admin_router)
app.include_router(files_router)
app.include_router(realtime_router)


@app.get("/health")
def health():
    return {
        "ok": True,
        "service": "fundflow",
        "env": settings.ENV,
        "version": VERSION,
        "build": settings.BUILD_SHA or None,
    }
