import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from kubernetes import config

from kolla.config import Settings
from kolla.database import create_engine, create_schema
from kolla.errors import KollaError
from kolla.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from kolla.routes import (
    teams_router,
    players_router,
    events_router,
    clips_router,
    segments_router,
    comments_router,
    playlists_router,
    shares_router,
    upload_links_router,
    webhooks_router
)
from kolla.services import ApprovalGate, ClipRegistry, IngestionService
from kolla.storage import ObjectStore
from kolla.transcoding import TranscodingService, get_provider

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    engine = create_engine(settings.database_url)
    await create_schema(engine)

    store = ObjectStore(settings)
    store.ensure_bucket()

    # Initialize Kubernetes client (in-cluster config)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        logger.warning("Could not load in-cluster config, Kubernetes transcoding will fail")

    registry = ClipRegistry(engine, store)
    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.registry = registry
    app.state.ingestion = IngestionService(engine, registry, store)
    app.state.approval = ApprovalGate(registry)
    app.state.transcoding = TranscodingService(get_provider(settings), registry, store, settings)
    logger.info(f"Transcoding provider: {app.state.transcoding.provider.name}")

    yield

    # Shutdown
    await engine.dispose()


app = FastAPI(title="Kolla Film Room", version="1.0.0", lifespan=lifespan)


@app.exception_handler(KollaError)
async def kolla_error_handler(request: Request, exc: KollaError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Add security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

# Add rate limiting middleware
app.add_middleware(RateLimitMiddleware)

# CORS middleware (must be last to apply first)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(teams_router)
app.include_router(players_router)
app.include_router(events_router)
app.include_router(clips_router)
app.include_router(segments_router)
app.include_router(comments_router)
app.include_router(playlists_router)
app.include_router(shares_router)
app.include_router(upload_links_router)
app.include_router(webhooks_router)


@app.get("/")
async def root():
    return {"message": "Kolla Film Room API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
