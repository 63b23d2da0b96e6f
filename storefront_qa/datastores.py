"""Data store access for backend checks and test-data cleanup.

Relational queries go through a SQLAlchemy engine (MySQL via PyMySQL in the
real environments, any SQLAlchemy URL when DATABASE_URL is set). Document
lookups go through pymongo. Both connections are opened on first use and
closed once by `close_all()` at the end of the run.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from pymongo import MongoClient
from pymongo.database import Database
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from storefront_qa.config import DatabaseSettings
from storefront_qa.log import meta

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Lazily connected SQL engine and MongoDB client."""

    def __init__(
        self,
        settings: DatabaseSettings,
        engine_factory: Callable[..., Engine] = create_engine,
        mongo_client_factory: Callable[..., Any] = MongoClient,
    ):
        self.settings = settings
        self._engine_factory = engine_factory
        self._mongo_client_factory = mongo_client_factory
        self._engine: Optional[Engine] = None
        self._mongo_client: Any = None

    def sql_engine(self) -> Engine:
        if self._engine is None:
            try:
                self._engine = self._engine_factory(self.settings.sql_url, pool_pre_ping=True)
            except SQLAlchemyError:
                logger.exception("Failed to create SQL engine for %s", self.settings.host or "DATABASE_URL")
                raise
            logger.info("SQL engine created")
        return self._engine

    def execute_query(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run one statement in its own transaction.

        Returns the rows as dicts for statements that produce rows, and an
        empty list otherwise. Use named parameters (`:name`).
        """
        logger.debug("Executing query: %s", sql, extra=meta(params=dict(params or {})))
        try:
            with self.sql_engine().begin() as connection:
                result = connection.execute(text(sql), dict(params or {}))
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError:
            logger.error("Query execution failed: %s", sql)
            raise

    def mongo_database(self) -> Database:
        if self._mongo_client is None:
            self._mongo_client = self._mongo_client_factory(self.settings.mongo_url)
            logger.info("MongoDB client created for %s", self.settings.mongo_url)
        return self._mongo_client[self.settings.name]

    def find_in_mongo(self, collection: str, query: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        logger.debug("MongoDB find on %s", collection, extra=meta(query=dict(query or {})))
        return list(self.mongo_database()[collection].find(dict(query or {})))

    def close_all(self) -> None:
        """Dispose of whatever was opened; safe to call more than once."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info("SQL engine disposed")
        if self._mongo_client is not None:
            self._mongo_client.close()
            self._mongo_client = None
            logger.info("MongoDB client closed")
