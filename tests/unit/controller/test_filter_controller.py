"""Tests for the filter controller event loop.

Exercises registration, debounced searches, stale-result suppression,
group rebuilds, pagination merges during a search, and tag sync batching.
Scoring runs on real worker threads; tests drive the controller through
``run_until_idle`` and a fake clock for debounce windows.
"""

from __future__ import annotations

import logging
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from checkfilter.config import FilterSettings
from checkfilter.controller import GROUP_IDLE, FilterCallbacks, FilterController
from checkfilter.entries.handles import MemoryEntry, MemorySearchBox
from checkfilter.search.pool import WorkerPool
from checkfilter.search.scorer import score_request


class FakeContainer:
    def __init__(self, labels: list[str], *, group: str = "city", next_token: str | None = None) -> None:
        self._entries = [MemoryEntry(label=label, group_name=group) for label in labels]
        self._next = next_token

    def entries(self):
        return list(self._entries)

    def total_pages(self):
        return None

    def next_page_token(self):
        return self._next

    def page_token(self, page_number: int):
        return None


class FakeDocument:
    def __init__(self, container: FakeContainer) -> None:
        self._container = container

    def containers(self):
        return [self._container]


def _settings(**overrides) -> FilterSettings:
    values = {"search_debounce_ms": 0, "sync_debounce_ms": 0, "worker_pool_size": 2}
    values.update(overrides)
    return FilterSettings(**values)


class FilterControllerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.now = [1000.0]
        self.rendered: list[tuple[str, int]] = []
        self.merged: list[tuple[str, int]] = []
        self.synced: list[tuple[float, int]] = []
        self.callbacks = FilterCallbacks(
            on_visibility_changed=lambda name, count: self.rendered.append((name, count)),
            on_items_merged=lambda name, handles: self.merged.append((name, len(handles))),
            on_sync_complete=lambda timestamp, count: self.synced.append((timestamp, count)),
        )
        self.handles: dict[str, MemoryEntry] = {}

    def _controller(self, **kwargs) -> FilterController:
        kwargs.setdefault("settings", _settings())
        controller = FilterController(callbacks=self.callbacks, clock=lambda: self.now[0], **kwargs)
        self.addCleanup(controller.close)
        return controller

    def _entries(self, *labels: str, checked: tuple[str, ...] = ()) -> list[MemoryEntry]:
        entries = [MemoryEntry(label=label, group_name="city", checked=label in checked) for label in labels]
        for entry in entries:
            self.handles[entry.label] = entry
        return entries

    def _register_cities(self, controller: FilterController) -> None:
        controller.register_group(
            "city",
            self._entries("Shelbyville", "Ogdenville", "Springfield", checked=("Springfield",)),
        )

    def test_register_group_skips_unlabeled_and_duplicate_entries(self) -> None:
        controller = self._controller()

        added = controller.register_group("city", self._entries("Springfield", "  ", "Springfield", "Ogdenville"))

        self.assertEqual(added, 2)
        self.assertEqual(controller.visible_labels("city"), ["Springfield", "Ogdenville"])
        self.assertEqual(self.rendered[-1], ("city", 2))

    def test_search_then_clear_restores_registration_order(self) -> None:
        controller = self._controller()
        self._register_cities(controller)
        box = MemorySearchBox("ville")
        controller.bind_search_box("city", box)

        controller.filter("city", "spring")
        self.assertTrue(controller.run_until_idle())
        self.assertEqual(controller.visible_labels("city"), ["Springfield"])
        self.assertFalse(self.handles["Shelbyville"].visible)

        controller.filter("city", "ville")
        self.assertTrue(controller.run_until_idle())
        self.assertEqual(controller.visible_labels("city"), ["Springfield", "Shelbyville", "Ogdenville"])
        springfield = controller.registry.item_id_for_label("city", "Springfield")
        self.assertEqual(controller.score_of("city", springfield), 1.1)

        controller.clear("city")
        self.assertEqual(box.value, "")
        self.assertIsNone(controller.active_term("city"))
        self.assertEqual(controller.visible_labels("city"), ["Shelbyville", "Ogdenville", "Springfield"])
        self.assertTrue(all(handle.visible for handle in self.handles.values()))
        self.assertIsNone(controller.score_of("city", springfield))

    def test_newer_search_wins_over_slower_older_one(self) -> None:
        gate = threading.Event()

        def gated(request):
            if request.search_term == "spring":
                gate.wait(2.0)
            return score_request(request)

        pool = WorkerPool(2, score_fn=gated)
        self.addCleanup(pool.shutdown)
        controller = self._controller(pool=pool)
        self._register_cities(controller)

        older = controller.filter("city", "spring")
        controller.filter("city", "ogden")
        self.assertTrue(controller.run_until_idle())
        self.assertEqual(controller.visible_labels("city"), ["Springfield", "Ogdenville"])

        gate.set()
        older.result(timeout=2.0)
        controller.poll_updates(timeout_seconds=0.2)
        controller.run_until_idle()
        self.assertEqual(controller.visible_labels("city"), ["Springfield", "Ogdenville"])
        self.assertEqual(controller.active_term("city"), "ogden")

    def test_scoring_failure_keeps_previous_results(self) -> None:
        def flaky(request):
            if request.search_term == "boom":
                raise RuntimeError("worker crashed")
            return score_request(request)

        pool = WorkerPool(1, score_fn=flaky)
        self.addCleanup(pool.shutdown)
        controller = self._controller(pool=pool)
        self._register_cities(controller)

        controller.filter("city", "ogden")
        controller.run_until_idle()
        with self.assertLogs("checkfilter.controller", level="WARNING"):
            controller.filter("city", "boom")
            self.assertTrue(controller.run_until_idle())

        self.assertEqual(controller.visible_labels("city"), ["Springfield", "Ogdenville"])
        self.assertEqual(controller.search_state("city"), GROUP_IDLE)

    def test_search_input_is_debounced_to_the_last_term(self) -> None:
        terms: list[str] = []

        def recording(request):
            terms.append(request.search_term)
            return score_request(request)

        pool = WorkerPool(1, score_fn=recording)
        self.addCleanup(pool.shutdown)
        controller = self._controller(pool=pool, settings=_settings(search_debounce_ms=150))
        self._register_cities(controller)

        controller.on_search_input("city", "o")
        self.now[0] += 0.1
        controller.on_search_input("city", "ogd")
        self.now[0] += 0.1
        controller.poll_updates()
        self.assertIsNone(controller.active_term("city"))
        self.assertFalse(controller.is_idle())

        self.now[0] += 0.1
        self.assertTrue(controller.run_until_idle())
        self.assertEqual(terms, ["ogd"])
        self.assertEqual(controller.visible_labels("city"), ["Springfield", "Ogdenville"])

    def test_empty_search_input_applies_immediately(self) -> None:
        controller = self._controller(settings=_settings(search_debounce_ms=150))
        self._register_cities(controller)
        controller.filter("city", "ogden")
        controller.run_until_idle()

        controller.on_search_input("city", "   ")

        self.assertEqual(len(controller.visible_labels("city")), 3)

    def test_rebuild_keeps_checked_state_and_reapplies_search(self) -> None:
        controller = self._controller()
        self._register_cities(controller)
        box = MemorySearchBox()
        controller.bind_search_box("city", box)
        controller.filter("city", "shelby")
        controller.run_until_idle()
        self.handles["Ogdenville"].set_checked(True)

        fresh = [MemoryEntry(label=label, group_name="city") for label in ("Springfield", "Shelbyville", "Ogdenville")]
        self.assertEqual(controller.rebuild_group("city", fresh), 3)
        self.assertTrue(controller.run_until_idle())

        self.assertEqual([entry.checked for entry in fresh], [True, False, True])
        self.assertEqual(controller.visible_labels("city"), ["Springfield", "Ogdenville", "Shelbyville"])
        self.assertIs(controller.registry.get("city").search_box, box)
        self.assertEqual(len(controller.store), 3)

    def test_paginated_items_join_an_active_search(self) -> None:
        pages = {"p2": FakeDocument(FakeContainer(["Ogdenville", "Shelbyville", "Capital City"]))}
        controller = self._controller(fetch_page=pages.__getitem__)
        controller.register_group("city", self._entries("Springfield", "Shelbyville"))
        controller.filter("city", "ville")
        controller.run_until_idle()

        started = controller.discover_pages(FakeContainer(["Springfield", "Shelbyville"], next_token="p2"))
        self.assertTrue(started)
        self.assertTrue(controller.run_until_idle())

        self.assertEqual(controller.visible_labels("city"), ["Shelbyville", "Ogdenville"])
        self.assertEqual(self.merged, [("city", 2)])
        stats = controller.get_cache_stats()
        self.assertEqual(stats["groups"]["city"]["total"], 4)
        self.assertEqual(stats["groups"]["city"]["paginated"], 2)
        self.assertEqual(stats["pagination"]["container_0"]["pages_loaded"], 1)
        capital = controller.registry.item_id_for_label("city", "Capital City")
        self.assertFalse(controller.store.handle(capital).visible)

    def test_paginated_items_are_shown_without_a_search(self) -> None:
        pages = {"p2": FakeDocument(FakeContainer(["Ogdenville"]))}
        controller = self._controller(fetch_page=pages.__getitem__)
        controller.register_group("city", self._entries("Springfield"))

        controller.discover_pages(FakeContainer(["Springfield"], next_token="p2"), current_token="p1")
        self.assertTrue(controller.run_until_idle())

        self.assertEqual(controller.visible_labels("city"), ["Springfield", "Ogdenville"])
        ogdenville = controller.registry.item_id_for_label("city", "Ogdenville")
        self.assertTrue(controller.store.handle(ogdenville).visible)

    def test_tag_sync_is_debounced_and_flushed_once(self) -> None:
        controller = self._controller(settings=_settings(sync_debounce_ms=50))
        controller.register_group("city", self._entries("Springfield", "Ogdenville"))

        controller.request_tag_sync({}, ["springfield"])
        controller.request_tag_sync({}, ["ogdenville"])
        controller.poll_updates()
        self.assertFalse(self.handles["Ogdenville"].checked)

        self.now[0] += 0.1
        controller.poll_updates()

        self.assertFalse(self.handles["Springfield"].checked)
        self.assertTrue(self.handles["Ogdenville"].checked)
        self.assertEqual(len(self.synced), 1)
        self.assertEqual(self.synced[0][1], 2)

    def test_checked_states_persist_across_sessions(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cache_path = Path(tmp) / "checked_states.json"
            with mock.patch("checkfilter.state.cache.CACHE_PATH", cache_path):
                settings = _settings(persist_checked_states=True)
                with FilterController(settings=settings) as first:
                    first.register_group("city", self._entries("Springfield", "Ogdenville", checked=("Ogdenville",)))
                    first.begin_load_more()
                self.assertTrue(cache_path.exists())

                with FilterController(settings=settings) as second:
                    reloaded = [MemoryEntry(label="Springfield"), MemoryEntry(label="Ogdenville")]
                    second.register_group("city", reloaded)
                    checked_count = second.get_cache_stats()["groups"]["city"]["checked"]

        self.assertEqual([entry.checked for entry in reloaded], [False, True])
        self.assertEqual(checked_count, 1)

    def test_cache_stats_and_debug_mode(self) -> None:
        controller = self._controller()
        self._register_cities(controller)
        package_logger = logging.getLogger("checkfilter")
        self.addCleanup(package_logger.setLevel, package_logger.level)

        controller.set_debug_mode(True)
        self.assertEqual(package_logger.level, logging.DEBUG)
        controller.set_debug_mode(False)
        self.assertEqual(package_logger.level, logging.NOTSET)

        stats = controller.get_cache_stats()
        self.assertEqual(
            stats["groups"]["city"],
            {"total": 3, "visible": 3, "paginated": 0, "checked": 1, "state": "idle"},
        )
        self.assertEqual(stats["worker_pool"]["total_workers"], 2)
        self.assertEqual(stats["pagination"], {})

    def test_filter_unknown_group_is_ignored(self) -> None:
        controller = self._controller()
        self.assertIsNone(controller.filter("missing", "spring"))


if __name__ == "__main__":
    unittest.main()
