from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.infra.db import engine, SessionLocal
from app.infra.models import Base
from app.init_db import ensure_admin

from app.api.routers.auth import router as auth_router
from app.api.routers.users import router as users_router
from app.api.routers.buyers import router as buyers_router
from app.api.routers.properties import router as properties_router
from app.api.routers.sales import router as sales_router
from app.api.routers.installments import router as installments_router
from app.api.routers.receipt_templates import router as receipt_templates_router
from app.api.routers.health import router as health_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# origines autorisées: liste séparée par des virgules
_env_origins = os.environ.get("FRONTEND_URLS") or os.environ.get("ALLOWED_ORIGINS")
if _env_origins:
    ALLOW_ORIGINS_LIST = [o.strip() for o in _env_origins.split(",") if o.strip()]
else:
    ALLOW_ORIGINS_LIST = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


app = FastAPI(title="Échéances API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS_LIST,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

logger.info("CORS allow_origins=%s", ALLOW_ORIGINS_LIST)


@app.on_event("startup")
def _startup() -> None:
    logger.info("creating tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        ensure_admin(db)
    finally:
        db.close()


app.include_router(health_router, tags=["health"])
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(users_router, prefix="/users", tags=["users"])
app.include_router(buyers_router, prefix="/buyers", tags=["buyers"])
app.include_router(properties_router, prefix="/properties", tags=["properties"])
app.include_router(sales_router, prefix="/sales", tags=["sales"])
app.include_router(installments_router, prefix="/installments", tags=["installments"])
app.include_router(receipt_templates_router, prefix="/receipt-templates", tags=["receipt-templates"])
