from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.logging import configure_logging
from .routers import router
from .services import RenewalScheduler, RenewalService

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.RENEWAL_ENABLED:
        scheduler = RenewalScheduler(
            RenewalService().run,
            startup_delay=settings.RENEWAL_STARTUP_DELAY_SECONDS,
            interval=settings.RENEWAL_INTERVAL_HOURS * 60 * 60,
        )
        scheduler.start()
    app.state.renewal_scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(router, prefix="/api")
