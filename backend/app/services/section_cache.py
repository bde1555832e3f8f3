"""Per-patient, per-category lazy-loading cache.

The cache owns exactly one ``CacheEntry`` per ``(patient_id, category)``
key, created on first request and kept for the life of the process. Loads
are idempotent: a key that is loading or loaded is never fetched again,
and a key in error is re-fetched on the next request. The per-key loading
guard is the only mutual exclusion; different keys load concurrently with
no ordering between them.

In-flight loads are never cancelled. A caller that stops waiting (a client
disconnect, a closed section) leaves the load running, and its result is
still written to the cache.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from app.schemas.sections import CacheStatus, Category
from app.services.fhir_client import FhirClientError
from app.services.normalizers import LIST_NORMALIZERS
from app.services.summary_pipeline import PipelineStepError

logger = logging.getLogger(__name__)

Loader = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class CacheKey:
    patient_id: str
    category: Category


@dataclass(frozen=True)
class CacheEntry:
    """Status plus payload for one key.

    A success entry always holds data; an error entry always holds a
    message and never stale data. Use the constructors below.
    """

    status: CacheStatus
    data: Any = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.status is CacheStatus.SUCCESS and self.data is None:
            raise ValueError("success entry requires data")
        if self.status is CacheStatus.ERROR and (not self.error or self.data is not None):
            raise ValueError("error entry requires a message and no data")

    @classmethod
    def idle(cls) -> "CacheEntry":
        return cls(status=CacheStatus.IDLE)

    @classmethod
    def loading(cls) -> "CacheEntry":
        return cls(status=CacheStatus.LOADING)

    @classmethod
    def success(cls, data: Any) -> "CacheEntry":
        return cls(status=CacheStatus.SUCCESS, data=data)

    @classmethod
    def failure(cls, message: str) -> "CacheEntry":
        return cls(status=CacheStatus.ERROR, error=message)


def build_list_loader(gateway: Any, category: Category) -> Loader:
    """Loader that searches one category and normalizes the results."""
    normalize = LIST_NORMALIZERS[category]

    async def load(patient_id: str) -> Any:
        resources = await gateway.list_by_category(patient_id, category)
        return normalize(resources)

    return load


def build_loaders(gateway: Any, summary_pipeline: Any | None = None) -> dict[Category, Loader]:
    """Loaders for every list category, plus summary when a pipeline is given."""
    loaders = {category: build_list_loader(gateway, category) for category in LIST_NORMALIZERS}
    if summary_pipeline is not None:
        loaders[Category.SUMMARY] = summary_pipeline.run
    return loaders


class SectionCache:
    """Owned store of section entries keyed by (patient id, category).

    All writes go through ``ensure_loaded`` (fresh loads) or ``put``
    (coordinated mutations such as appointment cancellation). The "open
    section" pointer is tracked separately and never affects loading.

    Example:
        cache = SectionCache(build_loaders(fhir_client, pipeline))
        entry = await cache.ensure_loaded("123", Category.IMMUNIZATION)
        if entry.status is CacheStatus.SUCCESS:
            ...
    """

    def __init__(self, loaders: dict[Category, Loader]):
        self._loaders = dict(loaders)
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._in_flight: dict[CacheKey, asyncio.Task] = {}
        self._open_key: CacheKey | None = None

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def get(self, patient_id: str, category: Category | str) -> CacheEntry:
        """Current entry for a key; idle when never requested."""
        return self._entries.get(CacheKey(patient_id, Category(category)), CacheEntry.idle())

    def put(self, patient_id: str, category: Category | str, entry: CacheEntry) -> None:
        """Replace an entry outright. Used by mutation coordinators only."""
        key = CacheKey(patient_id, Category(category))
        if key in self._in_flight:
            raise RuntimeError(f"cannot overwrite {key.category.value} for {patient_id} while loading")
        self._entries[key] = entry

    def is_loading(self, patient_id: str, category: Category | str) -> bool:
        return CacheKey(patient_id, Category(category)) in self._in_flight

    async def await_in_flight(self, patient_id: str, category: Category | str) -> CacheEntry:
        """Wait for a running load of this key, if any, without starting one."""
        key = CacheKey(patient_id, Category(category))
        task = self._in_flight.get(key)
        if task is not None:
            await asyncio.shield(task)
        return self.get(patient_id, key.category)

    async def ensure_loaded(
        self,
        patient_id: str,
        category: Category | str,
        wait: bool = True,
    ) -> CacheEntry:
        """Load a section unless it is already loading or loaded.

        Args:
            patient_id: FHIR Patient id.
            category: Section to load.
            wait: Await the in-flight load before returning. With False the
                current (usually loading) entry is returned immediately.

        Returns:
            The entry after the load finished (wait=True) or as it stands.

        Raises:
            ValueError: If no loader is registered for the category.
        """
        key = CacheKey(patient_id, Category(category))
        if key.category not in self._loaders:
            raise ValueError(f"no loader registered for {key.category.value}")

        # Check-and-mark happens before any await so concurrent callers
        # on the same key share one load.
        entry = self._entries.get(key)
        if entry is None or entry.status is CacheStatus.ERROR:
            self._entries[key] = CacheEntry.loading()
            self._in_flight[key] = asyncio.get_running_loop().create_task(self._load(key))
            logger.info("Loading %s for patient %s", key.category.value, patient_id)

        task = self._in_flight.get(key)
        if task is not None and wait:
            await asyncio.shield(task)
        return self._entries[key]

    async def _load(self, key: CacheKey) -> None:
        loader = self._loaders[key.category]
        try:
            data = await loader(key.patient_id)
            entry = CacheEntry.success(data)
        except FhirClientError as e:
            logger.warning("Load of %s for %s failed: %s", key.category.value, key.patient_id, e.message)
            self._entries[key] = CacheEntry.failure(e.message)
        except PipelineStepError as e:
            self._entries[key] = CacheEntry.failure(e.message)
        except Exception as e:
            logger.exception("Load of %s for %s raised", key.category.value, key.patient_id)
            self._entries[key] = CacheEntry.failure(str(e) or type(e).__name__)
        else:
            self._entries[key] = entry
            logger.info("Loaded %s for patient %s", key.category.value, key.patient_id)
        finally:
            self._in_flight.pop(key, None)

    # -------------------------------------------------------------------------
    # Open section pointer
    # -------------------------------------------------------------------------

    @property
    def open_key(self) -> CacheKey | None:
        """The one section currently shown open, if any."""
        return self._open_key

    def open_section(self, patient_id: str, category: Category | str) -> CacheKey:
        """Point the open section at a key. Does not start or stop any load."""
        self._open_key = CacheKey(patient_id, Category(category))
        return self._open_key

    def close_section(self) -> None:
        """Clear the open pointer; cached entries and in-flight loads are kept."""
        self._open_key = None

    def toggle_section(self, patient_id: str, category: Category | str) -> CacheKey | None:
        """Close the key if it is open, otherwise open it."""
        key = CacheKey(patient_id, Category(category))
        if self._open_key == key:
            self._open_key = None
        else:
            self._open_key = key
        return self._open_key
