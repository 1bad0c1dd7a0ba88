"""FastAPI application entry point for the CropShield policy engine.

CropShield issues parametric crop insurance: a policy pays out automatically
when an authorized weather oracle reports rainfall or temperature beyond the
policy's thresholds. No claims, no adjusters.

### Lifecycle

| Step | Endpoint | Description |
|------|----------|-------------|
| 1 | `POST /api/v1/oracles` | A weather station registers as an oracle |
| 2 | `POST /api/v1/policies` | A farmer buys coverage; premium goes to the crop's risk pool |
| 3 | `POST /api/v1/weather` | The oracle reports; breached policies pay out immediately |
| 4 | `POST /api/v1/weather/confirm` | A second oracle cross-checks the reading |
| 5 | `POST /api/v1/policies/{id}/terminate` | Early cancellation with a pro-rata refund |
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cropshield import __version__
from cropshield.api.admin import router as admin_router
from cropshield.api.routes import router
from cropshield.core.config import settings
from cropshield.core.database import build_engine, build_session_factory, init_db
from cropshield.core.errors import register_error_handlers
from cropshield.core.middleware import RequestLoggingMiddleware
from cropshield.services.engine import InsuranceEngine

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_engine = build_engine()
    await init_db(db_engine)
    app.state.engine = InsuranceEngine(build_session_factory(db_engine))
    height = await app.state.engine.current_height()
    logger.info(
        "Policy engine ready at height %d (database=%s)",
        height,
        db_engine.url.render_as_string(),
    )
    yield
    await db_engine.dispose()


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title="CropShield",
        description=__doc__,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if use_lifespan else None,
    )

    register_error_handlers(app)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api/v1", tags=["insurance"])
    app.include_router(admin_router)

    @app.get("/health", tags=["ops"])
    async def health_check() -> dict:
        return {"status": "ok", "service": "cropshield"}

    return app


app = create_app()
