"""Background discovery of later pages and dedup merge into live groups.

Sweep threads only fetch and reduce pages to :class:`FieldRecord` tuples and
post them as events; merging into the registry happens on the interactive
thread through :meth:`PaginationMerger.apply_page` and
:meth:`PaginationMerger.finish_sweep`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Protocol

from ..entries.handles import EntryHandle, PageEntry
from ..model.store import FilterContext
from ..model.types import FieldRecord, Item

logger = logging.getLogger(__name__)

# Page n waits for page n-2, so at most this many fetches overlap.
PARALLEL_PAGE_FETCHES = 2
FIRST_FOLLOW_UP_PAGE = 2


class PageContainer(Protocol):
    """One paginated list container as seen on a page document."""

    def entries(self) -> Iterable[PageEntry]: ...

    def total_pages(self) -> int | None: ...

    def next_page_token(self) -> str | None: ...

    def page_token(self, page_number: int) -> str | None: ...


class PageDocument(Protocol):
    def containers(self) -> Sequence[PageContainer]: ...


PageFetcher = Callable[[str], PageDocument]
PaginationEvent = tuple[object, ...]


@dataclass
class PaginatedContainerData:
    """Sweep bookkeeping for one physical paginated container."""

    position: int
    discovered_items: list[FieldRecord] = field(default_factory=list)
    pages_loaded: set[str] = field(default_factory=set)
    next_tokens: dict[str, str | None] = field(default_factory=dict)
    is_loading: bool = False
    last_sweep_ok: bool | None = None
    _discovered_keys: set[tuple[str, str]] = field(default_factory=set, repr=False)

    def discover(self, record: FieldRecord) -> bool:
        key = (record.group_name, record.label_text)
        if key in self._discovered_keys:
            return False
        self._discovered_keys.add(key)
        self.discovered_items.append(record)
        return True


def records_from_container(container: PageContainer) -> tuple[FieldRecord, ...]:
    """Reduce a container's entries to field data; unlabeled entries are skipped."""
    records: list[FieldRecord] = []
    for entry in container.entries():
        group_name = getattr(entry, "group_name", "")
        label = entry.get_label()
        if not group_name or not label or not label.strip():
            logger.debug("skipping paginated entry without group/label: %r", entry)
            continue
        records.append(FieldRecord.from_label(group_name, label.strip(), entry.template()))
    return tuple(records)


def _container_at(document: PageDocument, position: int) -> PageContainer | None:
    containers = document.containers()
    if 0 <= position < len(containers):
        return containers[position]
    return None


class PaginationMerger:
    """Runs pagination sweeps and merges discovered records into groups."""

    def __init__(
        self,
        context: FilterContext,
        fetch_page: PageFetcher,
        *,
        materialize: Callable[[str], EntryHandle],
        post_event: Callable[[PaginationEvent], None],
        merge_immediately: Callable[[str], bool] = lambda _group: False,
    ) -> None:
        self.context = context
        self._fetch_page = fetch_page
        self._materialize = materialize
        self._post_event = post_event
        self._merge_immediately = merge_immediately
        self._containers: dict[str, PaginatedContainerData] = {}

    def container_data(self, key: str) -> PaginatedContainerData | None:
        return self._containers.get(key)

    def is_loading(self, key: str | None = None) -> bool:
        if key is not None:
            data = self._containers.get(key)
            return data is not None and data.is_loading
        return any(data.is_loading for data in self._containers.values())

    def discover_and_merge(
        self,
        container: PageContainer,
        *,
        position: int = 0,
        current_token: str | None = None,
        key: str | None = None,
    ) -> bool:
        """Start a sweep for ``container``; returns ``False`` if one is already running."""
        key = key or f"container_{position}"
        data = self._containers.get(key)
        if data is None:
            data = PaginatedContainerData(position=position)
            self._containers[key] = data
        if data.is_loading:
            return False

        data.is_loading = True
        if current_token:
            data.pages_loaded.add(current_token)
            data.next_tokens[current_token] = container.next_page_token()
        for record in records_from_container(container):
            data.discover(record)

        next_token = container.next_page_token()
        if not next_token:
            self._post_event(("sweep_done", key, True))
            return True

        already_loaded = frozenset(data.pages_loaded)
        total_pages = container.total_pages()
        tokens: list[str] | None = None
        if total_pages is not None and total_pages > 1:
            derived = [container.page_token(number) for number in range(FIRST_FOLLOW_UP_PAGE, total_pages + 1)]
            if all(derived):
                tokens = [token for token in derived if token]
            else:
                logger.debug("could not derive page tokens for %s, falling back to sequential", key)

        if tokens is not None:
            logger.debug("loading %d pages for %s in parallel", len(tokens), key)
            target = self._run_parallel
            args: tuple[object, ...] = (key, position, tokens, already_loaded)
        else:
            target = self._run_sequential
            args = (key, position, next_token, already_loaded, dict(data.next_tokens))

        worker = threading.Thread(
            target=target,
            args=args,
            name=f"checkfilter-pagination-{key}",
            daemon=True,
        )
        worker.start()
        return True

    def _fetch_records(self, token: str, position: int) -> tuple[tuple[FieldRecord, ...], str | None] | None:
        document = self._fetch_page(token)
        container = _container_at(document, position)
        if container is None:
            return None
        return records_from_container(container), container.next_page_token()

    def _fetch_one(
        self,
        key: str,
        position: int,
        token: str,
        already_loaded: frozenset[str],
        previous: Future[bool] | None,
    ) -> bool:
        if previous is not None:
            wait([previous])
        if token in already_loaded:
            return True
        try:
            fetched = self._fetch_records(token, position)
        except Exception as exc:
            logger.warning("pagination fetch failed for %s (%s): %s", key, token, exc)
            return False
        if fetched is None:
            logger.debug("page %s has no container at position %d", token, position)
            return True
        records, following = fetched
        self._post_event(("page", key, token, records, following))
        return True

    def _run_parallel(
        self,
        key: str,
        position: int,
        tokens: list[str],
        already_loaded: frozenset[str],
    ) -> None:
        futures: list[Future[bool]] = []
        with ThreadPoolExecutor(
            max_workers=PARALLEL_PAGE_FETCHES,
            thread_name_prefix=f"checkfilter-page-{key}",
        ) as executor:
            for index, token in enumerate(tokens):
                previous = futures[index - PARALLEL_PAGE_FETCHES] if index >= PARALLEL_PAGE_FETCHES else None
                futures.append(executor.submit(self._fetch_one, key, position, token, already_loaded, previous))
        ok = all(future.result() for future in futures)
        self._post_event(("sweep_done", key, ok))

    def _run_sequential(
        self,
        key: str,
        position: int,
        token: str,
        already_loaded: frozenset[str],
        known_next: dict[str, str | None],
    ) -> None:
        # Loaded pages are walked through their recorded next link, not refetched.
        seen: set[str] = set()
        ok = True
        next_token: str | None = token
        while next_token and next_token not in seen:
            seen.add(next_token)
            if next_token in already_loaded and next_token in known_next:
                next_token = known_next[next_token]
                continue
            try:
                fetched = self._fetch_records(next_token, position)
            except Exception as exc:
                logger.warning("pagination fetch failed for %s (%s): %s", key, next_token, exc)
                ok = False
                break
            if fetched is None:
                break
            records, following = fetched
            self._post_event(("page", key, next_token, records, following))
            next_token = following
        self._post_event(("sweep_done", key, ok))

    def apply_page(
        self,
        key: str,
        token: str,
        records: Iterable[FieldRecord],
        next_token: str | None = None,
    ) -> dict[str, list[Item]]:
        """Record a fetched page; re-applying a loaded token is a no-op.

        Records for groups with an active search are merged right away and
        returned so the caller can re-filter them.
        """
        data = self._containers.get(key)
        if data is None or token in data.pages_loaded:
            return {}
        fresh = [record for record in records if data.discover(record)]
        data.pages_loaded.add(token)
        data.next_tokens[token] = next_token
        urgent = [record for record in fresh if self._merge_immediately(record.group_name)]
        return self.merge_records(urgent)

    def finish_sweep(self, key: str, ok: bool) -> dict[str, list[Item]]:
        """Clear the loading flag and merge everything discovered so far."""
        data = self._containers.get(key)
        if data is None:
            return {}
        data.is_loading = False
        data.last_sweep_ok = ok
        logger.debug("pagination sweep for %s finished (ok=%s, pages=%d)", key, ok, len(data.pages_loaded))
        return self.merge_records(data.discovered_items)

    def merge_records(self, records: Iterable[FieldRecord]) -> dict[str, list[Item]]:
        """Materialize and insert records whose group exists and lacks the label."""
        registry = self.context.registry
        merged: dict[str, list[Item]] = {}
        for record in records:
            if record.group_name not in registry or registry.has_label(record.group_name, record.label_text):
                continue
            try:
                handle = self._materialize(record.template)
            except Exception as exc:
                logger.debug("could not materialize %r: %s", record.label_text, exc)
                continue
            item = Item.from_record(record)
            if registry.add_item(item, handle):
                merged.setdefault(record.group_name, []).append(item)
        return merged

    def detach(self, key: str) -> None:
        self._containers.pop(key, None)

    def stats(self) -> dict[str, dict[str, object]]:
        return {
            key: {
                "total_items": len(data.discovered_items),
                "pages_loaded": len(data.pages_loaded),
                "is_loading": data.is_loading,
            }
            for key, data in self._containers.items()
        }


__all__ = [
    "PARALLEL_PAGE_FETCHES",
    "PageContainer",
    "PageDocument",
    "PageFetcher",
    "PaginatedContainerData",
    "PaginationMerger",
    "records_from_container",
]
