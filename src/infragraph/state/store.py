"""State Store: durable record of what was last provisioned, keyed by address."""

import asyncio
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional
from pydantic import ValidationError as SchemaError
from ..utils.errors import StateError
from ..utils.logging import get_logger
from .backends import StateBackend
from .models import StateDocument, StateRecord, STATE_FORMAT_VERSION

logger = get_logger("state.store")


class StateStore:
    """
    In-memory view of the state document for a single engine run.

    Mutations go through ``put``/``remove``/``mutate`` which take the
    per-address lock and flush the document to the backend, so a record is
    durable before dependents of that resource are dispatched. Flushes run
    in the default executor, one at a time, so backend IO never stalls other
    in-flight steps.
    """

    def __init__(self, backend: StateBackend):
        self.backend = backend
        self._records: Dict[str, StateRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._write_lock: Optional[asyncio.Lock] = None
        self._serial = 0
        self._lineage: Optional[str] = None
        self._loaded = False

    def load(self) -> None:
        """Load the document from the backend. Missing state means empty."""
        raw = self.backend.load()
        if raw is None:
            document = StateDocument(lineage=str(uuid.uuid4()))
        else:
            try:
                document = StateDocument(**raw)
            except SchemaError as e:
                raise StateError(f"State document is invalid: {e}")
            if document.version != STATE_FORMAT_VERSION:
                raise StateError(
                    f"Unsupported state format version {document.version} "
                    f"(expected {STATE_FORMAT_VERSION})"
                )

        for address, record in document.resources.items():
            if record.address != address:
                raise StateError(f"State record key {address} does not match {record.address}")

        self._records = dict(document.resources)
        self._serial = document.serial
        self._lineage = document.lineage or str(uuid.uuid4())
        self._locks = {}
        self._write_lock = None
        self._loaded = True
        logger.info(f"Loaded state with {len(self._records)} resources (serial {self._serial})")

    def _next_document(self) -> Dict[str, Any]:
        if not self._loaded:
            raise StateError("State store was never loaded")
        self._serial += 1
        document = StateDocument(
            serial=self._serial,
            lineage=self._lineage,
            resources=self._records,
        )
        return document.model_dump(mode="json")

    def persist(self) -> None:
        """Write the current records to the backend."""
        self.backend.save(self._next_document())

    async def flush(self) -> None:
        """Write the current records to the backend off the event loop thread."""
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        async with self._write_lock:
            document = self._next_document()
            save = asyncio.get_running_loop().run_in_executor(None, self.backend.save, document)
            try:
                await asyncio.shield(save)
            except asyncio.CancelledError:
                # the write lock is held until the thread finishes writing
                await save
                raise

    @property
    def serial(self) -> int:
        return self._serial

    def get(self, address: str) -> Optional[StateRecord]:
        return self._records.get(address)

    def addresses(self) -> List[str]:
        return sorted(self._records)

    def records(self) -> Dict[str, StateRecord]:
        """Shallow copy of all records (records themselves are replaced, never mutated)."""
        return dict(self._records)

    def __contains__(self, address: str) -> bool:
        return address in self._records

    def __len__(self) -> int:
        return len(self._records)

    def replace_records(self, records: Dict[str, StateRecord]) -> None:
        """Swap in a refreshed set of records and persist them."""
        for address, record in records.items():
            if record.address != address:
                raise StateError(f"Cannot store {record.address} under {address}")
        self._records = dict(records)
        self.persist()

    def lock_for(self, address: str) -> asyncio.Lock:
        lock = self._locks.get(address)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[address] = lock
        return lock

    async def put(self, record: StateRecord) -> None:
        async with self.lock_for(record.address):
            self._records[record.address] = record
            await self.flush()
        logger.debug(f"Recorded state for {record.address} ({record.provider_id})")

    async def remove(self, address: str) -> None:
        async with self.lock_for(address):
            if self._records.pop(address, None) is not None:
                await self.flush()
        logger.debug(f"Removed state for {address}")

    async def mutate(
        self,
        address: str,
        change: Callable[[Optional[StateRecord]], Optional[StateRecord]],
    ) -> Optional[StateRecord]:
        """
        Read-modify-write a single record under its lock.

        ``change`` receives the current record (or None) and returns the new
        record, or None to delete it.
        """
        async with self.lock_for(address):
            updated = change(self._records.get(address))
            if updated is None:
                self._records.pop(address, None)
            else:
                if updated.address != address:
                    raise StateError(f"Cannot store {updated.address} under {address}")
                self._records[address] = updated
            await self.flush()
            return updated


@contextmanager
def open_state(backend: StateBackend, persist: bool = True) -> Iterator[StateStore]:
    """
    Scope a StateStore to one run: load on entry, persist on exit.

    With ``persist=False`` the document is only read (plan-only runs).
    """
    store = StateStore(backend)
    store.load()
    try:
        yield store
    finally:
        if persist:
            store.persist()
