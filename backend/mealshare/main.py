from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mealshare.api.routes import router as api_router
from mealshare.config import settings
from mealshare.logging import configure_logging, get_logger
from mealshare.storage.db import create_db_and_tables

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("startup: env=%s creating tables", settings.env)
    create_db_and_tables()
    yield
    logger.info("shutdown")


app = FastAPI(title="Mealshare API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
