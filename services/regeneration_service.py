"""
Serve-or-rebuild coordination for quotation PDFs.

A request for a quotation PDF is served straight from the artifact store
when the file is there. When it is not (the store is ephemeral), the
filename is resolved to its quotation and the PDF is rebuilt from the
database record.

State machine per request:
    CHECKING        requested file exists -> serve it, done
    RESOLVING       RecordLocator; nothing found -> ArtifactNotFoundError
    LOCKED-REBUILD  join the in-flight rebuild for that quotation, or start one
    BUILDING        DocumentBuilder; failure -> BuildFailureError
    PERSISTING      write the PDF, then advance artifact_pointer and commit
    SERVING         release the quotation, hand the bytes to every waiter

SINGLE FLIGHT:
    RebuildRegistry maps quotation id -> RebuildHandle. The first request
    for an id owns the rebuild; later requests for the same id wait on the
    same handle. Handles are created on demand and dropped as soon as the
    rebuild finishes, so the map only holds contended keys.

THREAD MODEL:
    Request threads (WSGI)
    └── wait on RebuildHandle with a bounded timeout

    Rebuild threads (one per in-flight quotation)
    └── own their Session, run to completion even if every waiter timed out

ORDERING:
    The PDF is written (atomically) before artifact_pointer is updated, so
    a reader that sees the new pointer always finds the file. If the
    pointer update fails the pointer is left as it was.

Usage:
    service = RegenerationService(database, store, builder)

    try:
        served = service.fetch("quotation-1700000000000-7421.pdf")
    except ArtifactNotFoundError:
        ...

    service.shutdown()
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from core.artifact_store import ArtifactStore
from core.database import DatabaseManager
from core.exceptions import (
    ArtifactNotFoundError,
    BuildFailureError,
    DependencyNotReadyError,
    PersistFailureError,
    QuotationArtifactError,
    RebuildTimeoutError,
)
from models import ArtifactSource, Quotation, ServedArtifact
from models.quotation import DEFAULT_TERMS
from services.document_builder import DEFAULT_CURRENCY, DocumentBuilder, shape_pricing
from services.record_locator import RecordLocator, resolve_inquiry
from logging_config import get_logger, get_rebuild_logger, set_thread_name


# Module logger
logger = get_logger(__name__)

# Names tried before a rebuild gives up on finding a free one
MAX_NAME_ATTEMPTS = 10


class RebuildHandle:
    """
    One in-flight rebuild, shared by every request waiting on it.

    Thread Safety:
        - The rebuild thread calls resolve() or fail() exactly once
        - Request threads call wait(); the Event publishes the outcome
    """

    def __init__(self, quotation_id: str, requested_filename: str):
        self.quotation_id = quotation_id
        self.requested_filename = requested_filename
        self._done = threading.Event()
        self._result: Optional[ServedArtifact] = None
        self._error: Optional[QuotationArtifactError] = None
        self.waiters = 1

    @property
    def is_done(self) -> bool:
        return self._done.is_set()

    def resolve(self, result: ServedArtifact) -> None:
        self._result = result
        self._done.set()

    def fail(self, error: QuotationArtifactError) -> None:
        self._error = error
        self._done.set()

    def wait(self, timeout: Optional[float]) -> ServedArtifact:
        """
        Wait for the rebuild outcome.

        Raises:
            RebuildTimeoutError: If the rebuild is still running after timeout
            QuotationArtifactError: Whatever the rebuild failed with
        """
        if not self._done.wait(timeout=timeout):
            raise RebuildTimeoutError(self.quotation_id, timeout or 0.0)
        if self._error is not None:
            raise self._error
        return self._result


class RebuildRegistry:
    """
    Keyed single-flight map: quotation id -> RebuildHandle.

    Uses threading.Lock for all operations. claim() either creates the
    handle (caller owns the rebuild) or joins the existing one.
    """

    def __init__(self):
        self._inflight: Dict[str, RebuildHandle] = {}
        self._lock = threading.Lock()

    def claim(self, quotation_id: str, requested_filename: str) -> Tuple[RebuildHandle, bool]:
        """
        Returns:
            (handle, is_owner)
        """
        with self._lock:
            handle = self._inflight.get(quotation_id)
            if handle is not None:
                handle.waiters += 1
                return handle, False

            handle = RebuildHandle(quotation_id, requested_filename)
            self._inflight[quotation_id] = handle
            return handle, True

    def release(self, handle: RebuildHandle) -> None:
        """Drop the handle so the next request for the id starts fresh."""
        with self._lock:
            if self._inflight.get(handle.quotation_id) is handle:
                del self._inflight[handle.quotation_id]

    def detach(self, handle: RebuildHandle) -> None:
        """A waiter gave up; the rebuild itself keeps running."""
        with self._lock:
            handle.waiters = max(handle.waiters - 1, 0)

    def waiting(self, quotation_id: str) -> int:
        """Requests attached to the in-flight rebuild for an id (0 if none)."""
        with self._lock:
            handle = self._inflight.get(quotation_id)
            return handle.waiters if handle else 0

    def in_flight(self) -> List[str]:
        with self._lock:
            return list(self._inflight)

    def __len__(self) -> int:
        with self._lock:
            return len(self._inflight)


class RegenerationService:
    """
    Serves quotation PDFs, rebuilding missing ones at most once per quotation.

    Attributes:
        registry: In-flight rebuilds, keyed by quotation id
        is_ready: Whether the persistence layer is connected
    """

    def __init__(
        self,
        database: DatabaseManager,
        store: ArtifactStore,
        builder: DocumentBuilder,
        locator: Optional[RecordLocator] = None,
        dependency_wait_seconds: float = 5.0,
        rebuild_wait_seconds: float = 30.0,
        validity_days: int = 30,
        default_terms: str = DEFAULT_TERMS,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        self._database = database
        self._store = store
        self._builder = builder
        self._locator = locator or RecordLocator()
        self._dependency_wait = dependency_wait_seconds
        self._rebuild_wait = rebuild_wait_seconds
        self._validity_days = validity_days
        self._default_terms = default_terms
        self._default_currency = default_currency

        self._registry = RebuildRegistry()

        # Track rebuild threads for shutdown
        self._active_threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

        logger.info(
            f"RegenerationService initialized (dependency wait {dependency_wait_seconds}s, "
            f"rebuild wait {rebuild_wait_seconds}s)"
        )

    @property
    def registry(self) -> RebuildRegistry:
        return self._registry

    @property
    def store(self) -> ArtifactStore:
        return self._store

    @property
    def is_ready(self) -> bool:
        """Whether the slow path can run right now."""
        return self._database.is_ready

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the persistence layer is ready or timeout expires."""
        return self._database.wait_until_ready(timeout=timeout)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def fetch(self, filename: str, timeout: Optional[float] = None) -> ServedArtifact:
        """
        Serve a quotation PDF, rebuilding it if the file is gone.

        Args:
            filename: Requested artifact name, any historical format
            timeout: Max seconds to wait on a rebuild (default: configured)

        Returns:
            ServedArtifact (the served filename may differ from the request)

        Raises:
            ArtifactNotFoundError: Nothing resolves for filename
            DependencyNotReadyError: Database not ready within the bounded wait
            RebuildTimeoutError: Rebuild still running after timeout
            BuildFailureError: The PDF could not be built
            PersistFailureError: The PDF or pointer could not be stored
        """
        # CHECKING
        served = self._serve_existing(filename)
        if served is not None:
            return served

        logger.info(f"Artifact {filename} not in store, attempting to regenerate")

        if not self.wait_until_ready(timeout=self._dependency_wait):
            logger.warning(f"Database not ready after {self._dependency_wait}s for {filename}")
            raise DependencyNotReadyError(
                details={"filename": filename, "timeout_seconds": self._dependency_wait}
            )

        # RESOLVING
        quotation_id = self._resolve(filename)

        # LOCKED-REBUILD
        handle, is_owner = self._registry.claim(quotation_id, filename)
        if is_owner:
            self._start_rebuild(handle)
        else:
            logger.info(
                f"Rebuild for quotation {quotation_id[:8]} already in flight, "
                f"waiting ({handle.waiters} waiters)"
            )

        wait_seconds = self._rebuild_wait if timeout is None else timeout
        try:
            return handle.wait(wait_seconds)
        except RebuildTimeoutError:
            self._registry.detach(handle)
            logger.warning(
                f"Gave up waiting on rebuild for quotation {quotation_id[:8]} "
                f"after {wait_seconds}s; rebuild continues"
            )
            raise

    def shutdown(self, timeout_per_thread: float = 5.0) -> None:
        """Wait for active rebuild threads to finish."""
        with self._threads_lock:
            active = list(self._active_threads.items())

        if not active:
            logger.info("No active rebuild threads to wait for")
            return

        logger.info(f"Waiting for {len(active)} rebuild threads to complete...")
        for quotation_id, thread in active:
            if thread.is_alive():
                thread.join(timeout=timeout_per_thread)
                if thread.is_alive():
                    logger.warning(f"Rebuild thread {quotation_id[:8]} did not complete in time")

        logger.info("Regeneration service shutdown complete")

    # =========================================================================
    # STEPS
    # =========================================================================

    def _serve_existing(self, filename: str) -> Optional[ServedArtifact]:
        if not self._store.exists(filename):
            return None
        try:
            content = self._store.read(filename)
        except ArtifactNotFoundError:
            # Vanished between exists() and read(); take the slow path
            return None

        logger.debug(f"Serving existing artifact {filename}")
        return ServedArtifact(filename=filename, content=content, source=ArtifactSource.EXISTING)

    def _resolve(self, filename: str) -> str:
        try:
            with self._database.session() as session:
                match = self._locator.locate(session, filename)
                if match is None:
                    raise ArtifactNotFoundError(filename)
                return match.quotation.id
        except SQLAlchemyError as e:
            logger.error(f"Lookup failed for {filename}: {e}")
            raise DependencyNotReadyError(
                "Database query failed",
                details={"filename": filename, "error": str(e)}
            )

    def _start_rebuild(self, handle: RebuildHandle) -> None:
        quotation_id = handle.quotation_id
        thread = threading.Thread(
            target=self._rebuild_thread_main,
            args=(handle,),
            name=f"Rebuild-{quotation_id[:8]}",
            daemon=True
        )

        with self._threads_lock:
            self._active_threads[quotation_id] = thread

        logger.info(f"Starting rebuild for quotation {quotation_id[:8]}")
        thread.start()

    def _rebuild_thread_main(self, handle: RebuildHandle) -> None:
        """
        Rebuild thread body.

        Always releases the registry entry before publishing the outcome,
        so a failed rebuild never blocks the next attempt.
        """
        quotation_id = handle.quotation_id
        set_thread_name(f"Rebuild-{quotation_id[:8]}")
        rebuild_logger = get_rebuild_logger(quotation_id)

        result: Optional[ServedArtifact] = None
        error: Optional[QuotationArtifactError] = None

        try:
            result = self._rebuild(quotation_id, handle.requested_filename, rebuild_logger)
        except QuotationArtifactError as e:
            rebuild_logger.error(f"Rebuild failed: {e}")
            error = e
        except SQLAlchemyError as e:
            rebuild_logger.error(f"Rebuild failed at the database layer: {e}")
            error = DependencyNotReadyError(
                "Database query failed",
                details={"quotationId": quotation_id, "error": str(e)}
            )
        except Exception as e:
            rebuild_logger.error(f"Rebuild failed unexpectedly: {e}", exc_info=True)
            error = BuildFailureError(quotation_id, str(e))
        finally:
            self._registry.release(handle)
            with self._threads_lock:
                self._active_threads.pop(quotation_id, None)

        if error is not None:
            handle.fail(error)
        else:
            handle.resolve(result)
        rebuild_logger.info("Rebuild thread exiting")

    def _rebuild(self, quotation_id: str, requested_filename: str, rebuild_logger) -> ServedArtifact:
        with self._database.session() as session:
            quotation = session.get(Quotation, quotation_id)
            if quotation is None:
                raise ArtifactNotFoundError(
                    requested_filename, details={"quotationId": quotation_id}
                )

            # A rebuild that finished just before this one started already
            # stored the file; serve it instead of building again.
            pointer = quotation.artifact_pointer
            existing = self._serve_existing(pointer) if pointer else None
            if existing is not None:
                rebuild_logger.info(f"Current pointer {pointer} exists, serving it")
                return ServedArtifact(
                    filename=existing.filename,
                    content=existing.content,
                    source=ArtifactSource.EXISTING,
                    quotation_id=quotation_id,
                )

            inquiry = resolve_inquiry(session, quotation)
            if inquiry is None:
                raise ArtifactNotFoundError(
                    requested_filename,
                    message="Inquiry not found for quotation",
                    details={"quotationId": quotation_id, "inquiryRef": quotation.inquiry_ref},
                )

            # BUILDING
            rebuild_logger.info(
                f"Regenerating PDF for quotation {quotation.quotation_number} "
                f"(inquiry {inquiry.inquiry_number})"
            )
            try:
                pricing = shape_pricing(
                    quotation,
                    inquiry,
                    validity_days=self._validity_days,
                    default_terms=self._default_terms,
                    default_currency=self._default_currency,
                )
                document = self._builder.build(inquiry, pricing)
            except Exception as e:
                raise BuildFailureError(quotation_id, str(e))

            # PERSISTING: file first, then the pointer
            filename = self._store_new(inquiry, document, quotation_id, rebuild_logger)

            if filename != pointer:
                try:
                    session.execute(
                        update(Quotation)
                        .where(Quotation.id == quotation_id)
                        .values(artifact_pointer=filename)
                    )
                    session.commit()
                except SQLAlchemyError as e:
                    session.rollback()
                    raise PersistFailureError(filename, str(e), quotation_id=quotation_id)
                rebuild_logger.info(f"Pointer advanced {pointer} -> {filename}")

            rebuild_logger.info(
                f"PDF regenerated: {filename} ({len(document.content)} bytes, "
                f"{document.page_count} pages)"
            )
            return ServedArtifact(
                filename=filename,
                content=document.content,
                source=ArtifactSource.REGENERATED,
                quotation_id=quotation_id,
            )

    def _store_new(self, inquiry, document, quotation_id: str, rebuild_logger) -> str:
        """
        Write the built PDF under a name no other artifact holds.

        Another quotation of the same inquiry rebuilt in the same millisecond
        gets the same canonical name; its file must not be overwritten.

        Returns:
            The name the PDF was stored under
        """
        filename = document.filename
        for offset_ms in range(1, MAX_NAME_ATTEMPTS + 1):
            try:
                self._store.write(filename, document.content, exclusive=True)
                return filename
            except FileExistsError:
                rebuild_logger.warning(f"{filename} already taken, stepping to the next millisecond")
                filename = self._builder.canonical_filename(inquiry, offset_ms=offset_ms)

        raise PersistFailureError(
            document.filename, "No free artifact name", quotation_id=quotation_id
        )
