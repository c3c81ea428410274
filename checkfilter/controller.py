"""Filter controller: group registration, debounced search, result application.

The controller is driven from one interactive thread. Scoring futures and
pagination sweeps report back through an event queue that the interactive
thread drains with :meth:`FilterController.poll_updates`; all registry
mutation happens there.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future
from dataclasses import asdict, dataclass
from queue import Empty, Queue

from .config import FilterSettings, load_settings
from .entries.handles import EntryHandle, MemoryEntry
from .model.lexical import normalize_text
from .model.store import FilterContext, GroupRegistry, ItemStore
from .model.types import Item, ScoringRequest, ScoringResponse
from .pagination.merger import PageContainer, PageDocument, PageFetcher, PaginationMerger
from .search.pool import WorkerPool
from .state.cache import load_checked_states, save_checked_states
from .state.sync import StateSynchronizer

logger = logging.getLogger(__name__)

GROUP_IDLE = "idle"
GROUP_SEARCHING = "searching"
IDLE_POLL_SECONDS = 0.01


@dataclass(frozen=True)
class FilterCallbacks:
    """Notifications consumed by the host UI; every hook is optional."""

    on_visibility_changed: Callable[[str, int], None] | None = None
    on_order_changed: Callable[[str, list[EntryHandle]], None] | None = None
    on_checked_changed: Callable[[str, str, bool], None] | None = None
    on_sync_complete: Callable[[float, int], None] | None = None
    on_items_merged: Callable[[str, list[EntryHandle]], None] | None = None


def _missing_fetcher(page_token: str) -> PageDocument:
    raise RuntimeError(f"no page fetcher configured (requested {page_token!r})")


class FilterController:
    """Top-level orchestrator for searchable checkbox groups."""

    def __init__(
        self,
        *,
        settings: FilterSettings | None = None,
        callbacks: FilterCallbacks | None = None,
        context: FilterContext | None = None,
        pool: WorkerPool | None = None,
        fetch_page: PageFetcher | None = None,
        materialize: Callable[[str], EntryHandle] = MemoryEntry.from_template,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or load_settings()
        self.callbacks = callbacks or FilterCallbacks()
        self.context = context or FilterContext()
        self._owns_pool = pool is None
        self.pool = pool or WorkerPool(self.settings.worker_pool_size)
        self._clock = clock
        self._events: Queue[tuple[object, ...]] = Queue()
        self._request_seq: dict[str, int] = {}
        self._search_state: dict[str, str] = {}
        self._active_terms: dict[str, str] = {}
        self._last_scores: dict[str, dict[str, float]] = {}
        self._pending_inputs: dict[str, tuple[str, float]] = {}
        self._pending_tag_sync: tuple[Mapping[str, Iterable[str]], tuple[str, ...], float] | None = None
        self.sync = StateSynchronizer(
            self.context,
            on_checked_changed=self.callbacks.on_checked_changed,
            on_sync_complete=self.callbacks.on_sync_complete,
        )
        self.merger = PaginationMerger(
            self.context,
            fetch_page or _missing_fetcher,
            materialize=materialize,
            post_event=self._events.put,
            merge_immediately=self.has_active_search,
        )
        if self.settings.debug:
            self.set_debug_mode(True)
        if self.settings.persist_checked_states:
            self.sync.import_states(load_checked_states())

    @property
    def store(self) -> ItemStore:
        return self.context.store

    @property
    def registry(self) -> GroupRegistry:
        return self.context.registry

    # registration
    def register_group(self, name: str, elements: Iterable[EntryHandle]) -> int:
        """Seed a group from raw entries; returns how many entries were added.

        Entries without a label are skipped; duplicate labels are dropped.
        Recorded checked states are reapplied to the entries first.
        """
        self.registry.ensure_group(name)
        elements = list(elements)
        self.sync.restore_state(name, elements)
        added = 0
        for handle in elements:
            try:
                label = handle.get_label()
            except Exception as exc:
                logger.debug("label extraction failed in group %s: %s", name, exc)
                label = None
            label = label.strip() if label else ""
            if not label:
                logger.debug("skipping entry without a label in group %s: %r", name, handle)
                continue
            item = Item.from_label(name, label)
            item.is_checked = bool(handle.is_checked())
            if not self.registry.add_item(item, handle):
                logger.debug("dropping duplicate label %r in group %s", label, name)
                continue
            added += 1
        self._search_state.setdefault(name, GROUP_IDLE)
        self.filter(name, self._active_terms.get(name, ""))
        return added

    def bind_search_box(self, name: str, search_box: object) -> None:
        self.registry.bind_search_box(name, search_box)

    def bind_clear_button(self, name: str, clear_button: object) -> None:
        self.registry.bind_clear_button(name, clear_button)

    def rebuild_group(self, name: str, elements: Iterable[EntryHandle]) -> int:
        """Re-cache a group whose rendered entries were replaced wholesale.

        Checked states are captured from the old entries; registration
        restores them onto the new ones before the search term is reapplied.
        """
        self.sync.capture_state(name)
        previous = self.registry.get(name)
        search_box = previous.search_box if previous is not None else None
        clear_button = previous.clear_button if previous is not None else None
        self._request_seq[name] = self._request_seq.get(name, 0) + 1
        self.registry.remove_group(name)
        group = self.registry.ensure_group(name)
        group.search_box = search_box
        group.clear_button = clear_button
        added = self.register_group(name, elements)
        self._persist_states()
        return added

    def begin_load_more(self) -> None:
        """Capture every group's checked state before a "load more" replaces entries."""
        self.sync.capture_all()
        self._persist_states()

    # filtering
    def has_active_search(self, name: str) -> bool:
        return name in self._active_terms

    def search_state(self, name: str) -> str:
        return self._search_state.get(name, GROUP_IDLE)

    def active_term(self, name: str) -> str | None:
        return self._active_terms.get(name)

    def filter(self, name: str, term: str) -> Future[ScoringResponse] | None:
        """Filter ``name`` by ``term``.

        An empty term shows every item in registration order right away and
        returns ``None``. Otherwise the scoring future is returned; its result
        is applied by :meth:`poll_updates` unless a newer request superseded it.
        """
        group = self.registry.get(name)
        if group is None:
            logger.debug("filter requested for unknown group %s", name)
            return None

        seq = self._request_seq.get(name, 0) + 1
        self._request_seq[name] = seq
        query = normalize_text(term)
        if not query:
            self._active_terms.pop(name, None)
            self._last_scores.pop(name, None)
            self._search_state[name] = GROUP_IDLE
            self._show_all(name)
            return None

        self._active_terms[name] = term
        request = ScoringRequest(
            items=self.store.snapshot(group.item_ids),
            search_term=query,
            score_threshold=self.settings.score_threshold,
        )
        self._search_state[name] = GROUP_SEARCHING
        future = self.pool.submit(request)
        future.add_done_callback(lambda done: self._events.put(("scored", name, seq, done)))
        return future

    def clear(self, name: str) -> None:
        group = self.registry.get(name)
        if group is None:
            return
        if group.search_box is not None:
            group.search_box.set_value("")
        self._pending_inputs.pop(name, None)
        self.filter(name, "")

    def on_search_input(self, name: str, text: str) -> None:
        """Debounce keystrokes: one pending term per group, empty terms apply at once."""
        debounce = self.settings.search_debounce_seconds
        if not normalize_text(text) or debounce <= 0:
            self._pending_inputs.pop(name, None)
            self.filter(name, text)
            return
        self._pending_inputs[name] = (text, self._clock() + debounce)

    def _show_all(self, name: str) -> None:
        for item in self.registry.items(name):
            handle = self.store.handle(item.id)
            if handle is not None:
                handle.show()
            item.is_visible = True
        self.registry.reset_display_order(name)
        self._notify_render(name)

    def _apply_scores(self, name: str, seq: int, future: Future[ScoringResponse]) -> None:
        if seq != self._request_seq.get(name):
            logger.debug("discarding stale scoring result for %s (seq %d)", name, seq)
            return
        self._search_state[name] = GROUP_IDLE
        error = future.exception()
        if error is not None:
            logger.warning("scoring for group %s failed, keeping current results: %s", name, error)
            return

        response = future.result()
        ordered_ids = [match.id for match in response.filtered_items]
        matched = set(ordered_ids)
        for item in self.registry.items(name):
            handle = self.store.handle(item.id)
            should_show = item.id in matched
            if handle is not None and should_show != item.is_visible:
                if should_show:
                    handle.show()
                else:
                    handle.hide()
            item.is_visible = should_show
        self._last_scores[name] = {match.id: match.score for match in response.filtered_items}
        self.registry.set_display_order(name, ordered_ids)
        self._notify_render(name)

    def _notify_render(self, name: str) -> None:
        if self.callbacks.on_order_changed is not None:
            self.callbacks.on_order_changed(name, self.visible_handles(name))
        if self.callbacks.on_visibility_changed is not None:
            self.callbacks.on_visibility_changed(name, self.visible_count(name))

    # results
    def visible_items(self, name: str) -> list[Item]:
        return [item for item in self.registry.displayed_items(name) if item.is_visible]

    def visible_handles(self, name: str) -> list[EntryHandle]:
        handles = (self.store.handle(item.id) for item in self.visible_items(name))
        return [handle for handle in handles if handle is not None]

    def visible_labels(self, name: str) -> list[str]:
        return [item.label_text for item in self.visible_items(name)]

    def visible_count(self, name: str) -> int:
        return sum(1 for item in self.registry.items(name) if item.is_visible)

    def score_of(self, name: str, item_id: str) -> float | None:
        return self._last_scores.get(name, {}).get(item_id)

    # pagination
    def discover_pages(
        self,
        container: PageContainer,
        *,
        position: int = 0,
        current_token: str | None = None,
        key: str | None = None,
    ) -> bool:
        return self.merger.discover_and_merge(container, position=position, current_token=current_token, key=key)

    def _handle_merged(self, merged: dict[str, list[Item]]) -> None:
        for name, items in merged.items():
            searching = name in self._active_terms
            handles: list[EntryHandle] = []
            for item in items:
                handle = self.store.handle(item.id)
                if handle is None:
                    continue
                self.sync.restore_entry(name, handle)
                item.is_checked = bool(handle.is_checked())
                if searching:
                    handle.hide()
                    item.is_visible = False
                else:
                    handle.show()
                    item.is_visible = True
                handles.append(handle)
            logger.debug("merged %d paginated items into %s", len(handles), name)
            if self.callbacks.on_items_merged is not None:
                self.callbacks.on_items_merged(name, handles)
            if searching:
                self.filter(name, self._active_terms[name])
            else:
                self._notify_render(name)

    # external tag filters
    def sync_with_external_tags(
        self,
        active_values: Mapping[str, Iterable[str]],
        tag_labels: Iterable[str] = (),
    ) -> int:
        """Queue a reconcile now; writes land on the next :meth:`poll_updates`."""
        self._pending_tag_sync = None
        return self.sync.reconcile_with_external_tags(active_values, tag_labels)

    def request_tag_sync(
        self,
        active_values: Mapping[str, Iterable[str]],
        tag_labels: Iterable[str] = (),
    ) -> None:
        """Debounced variant of :meth:`sync_with_external_tags` for bursts of tag events."""
        due = self._clock() + self.settings.sync_debounce_seconds
        self._pending_tag_sync = (active_values, tuple(tag_labels), due)

    def flush_updates(self) -> int:
        return self.sync.flush_updates(force=True)

    # event loop integration
    def poll_updates(self, timeout_seconds: float = 0.0) -> bool:
        """Drain worker/pagination events, fire due debounced work, and flush batched writes."""
        processed = False

        def consume(event: tuple[object, ...]) -> None:
            kind = event[0]
            if kind == "scored":
                _kind, name, seq, future = event
                self._apply_scores(name, seq, future)
            elif kind == "page":
                _kind, key, token, records, next_token = event
                self._handle_merged(self.merger.apply_page(key, token, records, next_token))
            elif kind == "sweep_done":
                _kind, key, ok = event
                self._handle_merged(self.merger.finish_sweep(key, ok))

        if timeout_seconds > 0:
            try:
                first_event = self._events.get(timeout=timeout_seconds)
            except Empty:
                first_event = None
            if first_event is not None:
                consume(first_event)
                processed = True

        while True:
            try:
                event = self._events.get_nowait()
            except Empty:
                break
            consume(event)
            processed = True

        now = self._clock()
        for name, (term, due) in list(self._pending_inputs.items()):
            if due <= now:
                del self._pending_inputs[name]
                self.filter(name, term)
                processed = True

        if self._pending_tag_sync is not None and self._pending_tag_sync[2] <= now:
            active_values, tag_labels, _due = self._pending_tag_sync
            self.sync_with_external_tags(active_values, tag_labels)

        if self.sync.has_pending_updates:
            self.sync.flush_updates()
            processed = True

        return processed

    def is_idle(self) -> bool:
        return (
            self._events.empty()
            and not self._pending_inputs
            and self._pending_tag_sync is None
            and not self.sync.has_pending_updates
            and not self.merger.is_loading()
            and all(state == GROUP_IDLE for state in self._search_state.values())
        )

    def run_until_idle(self, timeout_seconds: float = 2.0) -> bool:
        """Poll until no search, sweep, or debounced work is outstanding."""
        deadline = time.monotonic() + timeout_seconds
        while True:
            self.poll_updates(timeout_seconds=IDLE_POLL_SECONDS)
            if self.is_idle():
                return True
            if time.monotonic() >= deadline:
                return False

    # diagnostics
    def get_cache_stats(self) -> dict[str, object]:
        groups: dict[str, dict[str, object]] = {}
        for name in self.registry.names():
            items = self.registry.items(name)
            groups[name] = {
                "total": len(items),
                "visible": sum(1 for item in items if item.is_visible),
                "paginated": sum(1 for item in items if item.is_paginated),
                "checked": sum(1 for item in items if item.is_checked),
                "state": self.search_state(name),
            }
        return {
            "groups": groups,
            "pagination": self.merger.stats(),
            "worker_pool": asdict(self.pool.stats()),
        }

    def set_debug_mode(self, enabled: bool) -> None:
        package_logger = logging.getLogger("checkfilter")
        package_logger.setLevel(logging.DEBUG if enabled else logging.NOTSET)
        if enabled:
            logger.debug("debug mode enabled, worker pool size %d", self.pool.size)

    def _persist_states(self) -> None:
        if self.settings.persist_checked_states:
            save_checked_states(self.sync.export_states())

    def close(self) -> None:
        self._persist_states()
        if self._owns_pool:
            self.pool.shutdown()

    def __enter__(self) -> FilterController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "FilterCallbacks",
    "FilterController",
    "GROUP_IDLE",
    "GROUP_SEARCHING",
]
