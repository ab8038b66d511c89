"""
Contains services that are available via fastapi dependency injection.
"""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Annotated
from uuid import UUID

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.params import Depends
from sqlalchemy.engine.url import URL as DataBaseURL
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
)

from hybridflow.config import Settings
from hybridflow.ml.engine import NeuralBackend
from hybridflow.model.database_model import Base
from hybridflow.utils import not_none


@asynccontextmanager
async def use_hybridflow_db() -> AsyncGenerator[AsyncEngine]:
    """
    Context manager that initializes the hybridflow database.
    """

    load_dotenv()

    url = DataBaseURL.create(
        drivername=os.environ["SQLALCHEMY_DRIVER"],
        username=os.environ["POSTGRES_USER"],
        password=os.environ["POSTGRES_PASSWORD"],
        host=os.environ["POSTGRES_HOST"],
        port=int(os.environ["POSTGRES_PORT"]),
        database=os.environ["POSTGRES_DB"],
    )
    engine = create_async_engine(url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


def configure_logging(settings: Settings) -> None:
    """
    Route the ``hybridflow`` loggers to stderr at the configured level.
    """

    logger = logging.getLogger("hybridflow")
    logger.setLevel(settings.log_level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
        logger.addHandler(handler)


engine_singleton: AsyncEngine | None = None


@asynccontextmanager
async def hybridflow_lifespan(_app: FastAPI | None = None) -> AsyncGenerator[None]:
    """
    Fastapi lifespan context manager.
    Configures logging and initializes the database.
    """

    global engine_singleton  # noqa PLW0603

    configure_logging(get_settings())
    async with use_hybridflow_db() as engine:
        engine_singleton = engine
        yield


def get_db_engine() -> AsyncEngine:
    """
    Gets the hybridflow database.
    Only available when called during hybridflow_lifespan.
    """

    return not_none(engine_singleton, "DataBase not initialized")


def get_neural_backend() -> NeuralBackend | None:
    """
    Trainer for neural network model types.
    None is configured by default, override this dependency to provide one.
    """

    return None


@lru_cache
def get_settings() -> Settings:
    """
    Get environment variables from pydantic and cache them.
    """

    return Settings()


def get_result_url(
    uuid: UUID, settings: Annotated[Settings, Depends(get_settings)]
) -> str:
    """
    Return the full URL for a result identified by its UUID.
    """

    return f"{settings.api_base_url}results/{uuid}"


def get_request_url(
    uuid: UUID, settings: Annotated[Settings, Depends(get_settings)]
) -> str:
    """
    Return the full URL for a stored workflow request identified by its UUID.
    """

    return f"{settings.api_base_url}request/{uuid}"
