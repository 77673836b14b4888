import logging
import os
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.ledger.src.ledger.routes import api_router

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: BackgroundScheduler | None = None


def run_ingestion() -> None:
    """Apply new pool events to the ledger, then run a time tick."""
    from services.ledger.src.ledger.jobs.process_events import process_all_events

    logger.info("Starting ledger update...")
    try:
        results = process_all_events()
        total = sum(v for v in results.values() if v >= 0)
        failed = [event_type for event_type, v in results.items() if v < 0]
        logger.info(f"Ledger update: {total} events applied")
        if failed:
            logger.warning(f"Ledger update: failed to fetch {', '.join(failed)}")
    except Exception as e:
        logger.error(f"Ledger update failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start scheduler on startup."""
    global scheduler

    if os.getenv("INIT_DB", "true").lower() == "true":
        from services.ledger.src.ledger.db.engine import get_engine, init_db
        init_db(get_engine())

    # Start ledger scheduler - runs at the top of each hour
    if os.getenv("ENABLE_EVENT_INGESTION", "true").lower() == "true":
        logger.info("Starting ledger scheduler (every hour at :00)")

        scheduler = BackgroundScheduler()
        scheduler.add_job(
            run_ingestion,
            "cron",
            minute=0,  # Run at the top of every hour
            id="ledger_update",
            name="Aave V3 Ledger Update (Events + Time Tick)",
            # Events must be applied by a single writer
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()

        # Run immediately on startup to catch up
        if os.getenv("RUN_INGESTION_ON_STARTUP", "true").lower() == "true":
            logger.info("Running initial ledger update...")
            run_ingestion()

    yield

    # Shutdown scheduler
    if scheduler is not None:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shutdown complete")


app = FastAPI(title="Aave Lending Ledger API", lifespan=lifespan)

# CORS for frontend - allow localhost and Vercel deployments
cors_origins = [
    "http://localhost:3000",
    "https://localhost:3000",
]

# Add custom origin from environment (e.g., your Vercel domain)
if os.getenv("CORS_ORIGIN"):
    cors_origins.append(os.getenv("CORS_ORIGIN"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_origin_regex=r"https://.*\.vercel\.app",  # Match all Vercel subdomains
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router)


@app.get("/")
def root() -> dict[str, str]:
    return {"service": "aave-lending-ledger-api", "docs": "/docs"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
