import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.logger import get_logger
from web.backend.routers import mandala, pl

logger = get_logger("api")


def create_app() -> FastAPI:
    app = FastAPI(title="Mandala Planner API", version="1.0")

    raw_origins = os.getenv("MANDALA_ALLOWED_ORIGINS", "*")
    allow_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    allow_credentials = "*" not in allow_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": "Mandala Planner"}

    app.include_router(mandala.router, prefix="/api/v1/mandala", tags=["mandala"])
    app.include_router(pl.router, prefix="/api/v1/pl", tags=["pl"])

    logger.info("API routes registered: /api/v1/mandala, /api/v1/pl")
    return app


app = create_app()
