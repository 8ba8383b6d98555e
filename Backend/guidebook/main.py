import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_settings
from .core.db import create_all_tables
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .onboarding import router as onboarding_router
from .rate_limiter import SecurityHeadersMiddleware
from .routes import ROUTERS


settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title="Guidebook Outfitter Backend")
logger = logging.getLogger(__name__)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(onboarding_router)
for router in ROUTERS:
    app.include_router(router)


@app.on_event("startup")
async def on_startup() -> None:
    if settings.create_tables_on_startup:
        await create_all_tables()
        logger.info("Database tables ensured")


@app.get("/health")
async def health():
    return {"status": "ok"}
