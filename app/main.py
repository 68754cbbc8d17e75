from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import init_db
from app.logging_config import get_logger, setup_logging
from app.routers import crm, webhook

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title=settings.crm_name,
    description="Bot to live agent handoff for Business Messages conversations",
    version="0.1.0",
    debug=settings.debug,
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(crm.router)


@app.on_event("startup")
def create_tables() -> None:
    if settings.store_backend != "sql":
        return
    init_db()
    logger.info("Database tables ready", extra={"context": {"backend": settings.store_backend}})


@app.get("/health")
async def health():
    return {"status": "ok"}
