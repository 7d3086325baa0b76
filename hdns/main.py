from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from .db.database import init_db
from .dns.scheduler import refresh_scheduler
from .logger import logger
from .routers import address, config, history, records, zones


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up and initializing the database...")
    await init_db()
    await refresh_scheduler.start()
    logger.info("Startup complete.")
    yield
    logger.info("Shutting down the refresh scheduler...")
    await refresh_scheduler.shutdown()


api_app = FastAPI(root_path="/api")

api_app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_app.include_router(address.router)
api_app.include_router(records.router)
api_app.include_router(history.router)
api_app.include_router(zones.router)
api_app.include_router(config.router)

app = FastAPI(lifespan=lifespan, title="hdns")
app.mount("/api", api_app)
