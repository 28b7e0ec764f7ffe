"""
MongoDB connection management.

One ``MongoClient`` per process, created on first use and shared by every
thread of the worker pool. Indexes for the job collection are ensured
when the client is created.
"""

import logging
import threading
from typing import Optional

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure

from configs.config import get_config

logger = logging.getLogger(__name__)

cfg = get_config()


class DatabaseManager:
    """Owns the process-wide MongoClient."""

    _lock = threading.Lock()
    _client: Optional[MongoClient] = None
    _db: Optional[Database] = None

    @classmethod
    def get_db(cls) -> Database:
        """Return the database handle, connecting on first call."""
        if cls._db is None:
            with cls._lock:
                if cls._db is None:
                    cls._connect()
        return cls._db

    @classmethod
    def _connect(cls) -> None:
        client = MongoClient(
            cfg.MONGODB_URL,
            serverSelectionTimeoutMS=cfg.MONGODB_TIMEOUT_MS,
            connectTimeoutMS=cfg.MONGODB_TIMEOUT_MS,
            socketTimeoutMS=cfg.MONGODB_TIMEOUT_MS * 2,
        )
        try:
            client.admin.command("ping")
        except ConnectionFailure as exc:
            logger.error("MongoDB unreachable at startup: %s", exc)
            client.close()
            raise
        db = client[cfg.DATABASE_NAME]
        cls._ensure_job_indexes(db)
        cls._client, cls._db = client, db
        logger.info(
            "Connected to MongoDB database %s (collection %s)",
            cfg.DATABASE_NAME, cfg.JOBS_COLLECTION,
        )

    @staticmethod
    def _ensure_job_indexes(db: Database) -> None:
        jobs = db[cfg.JOBS_COLLECTION]
        jobs.create_index("job_id", unique=True)
        # stale-processing listing
        jobs.create_index([("status", ASCENDING), ("updated_at", ASCENDING)])

    @classmethod
    def close(cls) -> None:
        with cls._lock:
            if cls._client is not None:
                cls._client.close()
                logger.info("MongoDB connection closed")
            cls._client = cls._db = None


def get_db() -> Database:
    """Shortcut to obtain the database handle."""
    return DatabaseManager.get_db()
