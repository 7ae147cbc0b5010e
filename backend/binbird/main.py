from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from binbird.api.routes import router
from binbird.core.config import get_settings
from binbird.core.logging import configure_logging, get_logger


settings = get_settings()
configure_logging(settings.debug)
get_logger(__name__).info(
    "Run API configured",
    storage_root=str(settings.storage_root),
    routing_provider=settings.routing_provider,
    rollover_hour=settings.operational_rollover_hour,
    timezone=settings.timezone,
)

app = FastAPI(title="BinBird Run API", version="0.1.0", debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Return basic service health."""

    return {"status": "ok"}
