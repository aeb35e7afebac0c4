"""
Database lifecycle management.

This module owns the SQLAlchemy engine and session factory and publishes
an explicit readiness signal. The HTTP routes are registered before the
database is reachable; instead of polling a shared flag, callers block on
wait_until_ready(timeout) and fail with a 503 when the wait expires.

THREAD SAFETY:
    - initialize() may run in the main thread or in the connector thread
    - session() hands out a fresh Session per call; sessions are never shared
    - readiness is a threading.Event, safe to wait on from any thread

Usage:
    # At application startup
    db = DatabaseManager("sqlite:///quotations.db")
    db.start_background_connect()

    # In request threads
    if db.wait_until_ready(timeout=5.0):
        with db.session() as session:
            ...

    # At application shutdown
    db.cleanup()
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .exceptions import DatabaseUnavailableError
from logging_config import get_logger, set_thread_name


# Module logger
logger = get_logger(__name__)


class DatabaseManager:
    """
    Manages the engine, schema creation and readiness signal.

    Attributes:
        database_url: SQLAlchemy URL
        is_ready: True once the schema exists and a connection succeeded
    """

    def __init__(self, database_url: str, echo: bool = False):
        self._database_url = database_url
        self._echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

        self._ready = threading.Event()
        self._stop_event = threading.Event()
        self._connector: Optional[threading.Thread] = None
        self._init_lock = threading.Lock()

    @property
    def database_url(self) -> str:
        return self._database_url

    @property
    def is_ready(self) -> bool:
        """True once initialize() has succeeded."""
        return self._ready.is_set()

    @property
    def engine(self) -> Engine:
        """
        The SQLAlchemy engine.

        Raises:
            RuntimeError: If the database is not initialized
        """
        if self._engine is None or not self.is_ready:
            raise RuntimeError("Database not initialized - call initialize() first")
        return self._engine

    def _create_engine(self) -> Engine:
        if self._database_url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in self._database_url or self._database_url == "sqlite://":
                # One shared connection, otherwise each thread sees its own empty database
                kwargs["poolclass"] = StaticPool
            return create_engine(self._database_url, echo=self._echo, **kwargs)
        return create_engine(self._database_url, echo=self._echo, pool_pre_ping=True)

    def initialize(self) -> None:
        """
        Create the engine, verify connectivity, create tables, signal ready.

        Safe to call more than once; later calls are no-ops.

        Raises:
            DatabaseUnavailableError: If the database cannot be reached
        """
        with self._init_lock:
            if self.is_ready:
                return

            from models import Base

            logger.info(f"Initializing database: {self._safe_url()}")
            try:
                if self._engine is None:
                    self._engine = self._create_engine()
                engine = self._engine
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                Base.metadata.create_all(engine)
            except SQLAlchemyError as e:
                logger.error(f"Database initialization failed: {e}")
                raise DatabaseUnavailableError(self._safe_url(), str(e))

            self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
            self._ready.set()
            logger.info("Database ready")

    def start_background_connect(self, retry_interval_seconds: float = 2.0) -> None:
        """
        Initialize in a background thread, retrying until it succeeds.

        Returns immediately. Requests that need the database wait on
        wait_until_ready() in the meantime.
        """
        if self.is_ready or (self._connector and self._connector.is_alive()):
            return

        self._stop_event.clear()
        self._connector = threading.Thread(
            target=self._connect_loop,
            args=(retry_interval_seconds,),
            name="DBConnect",
            daemon=True
        )
        self._connector.start()

    def _connect_loop(self, retry_interval_seconds: float) -> None:
        set_thread_name("DBConnect")
        attempts = 0

        while not self._stop_event.is_set():
            attempts += 1
            try:
                self.initialize()
                if attempts > 1:
                    logger.info(f"Database connected after {attempts} attempts")
                return
            except DatabaseUnavailableError as e:
                logger.warning(f"Database connect attempt {attempts} failed: {e.message}")

            if self._stop_event.wait(timeout=retry_interval_seconds):
                break

        logger.info("Database connector exiting")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until ready or timeout; returns readiness."""
        return self._ready.wait(timeout=timeout)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Yield a new Session; rolls back on error and always closes.

        Raises:
            RuntimeError: If the database is not initialized
        """
        if self._session_factory is None or not self.is_ready:
            raise RuntimeError("Database not initialized - call initialize() first")

        session = self._session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def cleanup(self) -> None:
        """Stop the connector and dispose of the engine. Idempotent."""
        self._stop_event.set()
        if self._connector and self._connector.is_alive():
            self._connector.join(timeout=5.0)
        self._connector = None

        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None
        self._ready.clear()

    def _safe_url(self) -> str:
        """URL with any password masked, for logs."""
        try:
            from sqlalchemy.engine import make_url
            return make_url(self._database_url).render_as_string(hide_password=True)
        except Exception:
            return "<unparseable database url>"

    def __enter__(self) -> "DatabaseManager":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()
