"""Tests for pagination sweeps and the dedup merge into live groups.

Pages are served from in-memory fake documents; sweep threads post events
to a queue that the tests drain the same way the controller does.
"""

from __future__ import annotations

import queue
import threading
import time
import unittest

from checkfilter.entries.handles import MemoryEntry
from checkfilter.model import FieldRecord, FilterContext, Item
from checkfilter.pagination.merger import PaginationMerger


class FakeContainer:
    def __init__(
        self,
        labels: list[str],
        *,
        group: str = "city",
        next_token: str | None = None,
        total: int | None = None,
        tokens: dict[int, str] | None = None,
    ) -> None:
        self._entries = [MemoryEntry(label=label, group_name=group) for label in labels]
        self._next = next_token
        self._total = total
        self._tokens = tokens or {}

    def entries(self):
        return list(self._entries)

    def total_pages(self):
        return self._total

    def next_page_token(self):
        return self._next

    def page_token(self, page_number: int):
        return self._tokens.get(page_number)


class FakeDocument:
    def __init__(self, *containers: FakeContainer) -> None:
        self._containers = list(containers)

    def containers(self):
        return self._containers


class FakeSite:
    """Serves fake documents by token and records fetch order."""

    def __init__(self, pages: dict[str, FakeDocument], failing: tuple[str, ...] = ()) -> None:
        self.pages = pages
        self.failing = set(failing)
        self.fetched: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, token: str) -> FakeDocument:
        with self._lock:
            self.fetched.append(token)
        if token in self.failing:
            raise ConnectionError(f"cannot load {token}")
        return self.pages[token]


class PaginationMergerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.context = FilterContext()
        self.events: queue.Queue = queue.Queue()
        self.searching: set[str] = set()
        for label in ("Springfield", "Shelbyville"):
            self.context.registry.add_item(Item.from_label("city", label), MemoryEntry(label=label, group_name="city"))

    def _merger(self, site: FakeSite) -> PaginationMerger:
        return PaginationMerger(
            self.context,
            site,
            materialize=MemoryEntry.from_template,
            post_event=self.events.put,
            merge_immediately=lambda group: group in self.searching,
        )

    def _drain(self, merger: PaginationMerger, timeout: float = 2.0) -> tuple[list[tuple], dict[str, list[Item]]]:
        """Apply events until a sweep finishes; returns page events and the final merge."""
        pages: list[tuple] = []
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            try:
                event = self.events.get(timeout=0.05)
            except queue.Empty:
                continue
            if event[0] == "page":
                _, key, token, records, next_token = event
                pages.append((token, merger.apply_page(key, token, records, next_token)))
            elif event[0] == "sweep_done":
                _, key, ok = event
                return pages, merger.finish_sweep(key, ok)
        self.fail("pagination sweep did not finish")

    def _labels(self) -> list[str]:
        return [item.label_text for item in self.context.registry.items("city")]

    def test_sequential_sweep_follows_next_links_and_skips_duplicates(self) -> None:
        site = FakeSite(
            {
                "p2": FakeDocument(FakeContainer(["Ogdenville", "Shelbyville"], next_token="p3")),
                "p3": FakeDocument(FakeContainer(["North Haverbrook"])),
            }
        )
        merger = self._merger(site)
        first_page = FakeContainer(["Springfield", "Shelbyville"], next_token="p2")

        self.assertTrue(merger.discover_and_merge(first_page, current_token="p1"))
        pages, merged = self._drain(merger)

        self.assertEqual(site.fetched, ["p2", "p3"])
        self.assertEqual([token for token, _ in pages], ["p2", "p3"])
        self.assertEqual([item.label_text for item in merged["city"]], ["Ogdenville", "North Haverbrook"])
        self.assertEqual(self._labels(), ["Springfield", "Shelbyville", "Ogdenville", "North Haverbrook"])
        self.assertTrue(all(item.is_paginated and not item.is_visible for item in merged["city"]))
        data = merger.container_data("container_0")
        self.assertEqual(data.pages_loaded, {"p1", "p2", "p3"})
        self.assertFalse(data.is_loading)
        self.assertTrue(data.last_sweep_ok)

    def test_single_page_container_finishes_without_fetching(self) -> None:
        site = FakeSite({})
        merger = self._merger(site)

        self.assertTrue(merger.discover_and_merge(FakeContainer(["Springfield"]), current_token="p1"))
        _, merged = self._drain(merger)

        self.assertEqual(site.fetched, [])
        self.assertEqual(merged, {})
        self.assertFalse(merger.is_loading())

    def test_parallel_sweep_overlaps_at_most_two_fetches(self) -> None:
        lock = threading.Lock()
        active = [0]
        peak = [0]
        tokens = {2: "p2", 3: "p3", 4: "p4", 5: "p5"}
        pages = {token: FakeDocument(FakeContainer([f"Town {token}"])) for token in tokens.values()}

        def fetch(token: str) -> FakeDocument:
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(0.02)
            with lock:
                active[0] -= 1
            return pages[token]

        merger = PaginationMerger(
            self.context,
            fetch,
            materialize=MemoryEntry.from_template,
            post_event=self.events.put,
        )
        first_page = FakeContainer(["Springfield"], next_token="p2", total=5, tokens=tokens)

        merger.discover_and_merge(first_page, current_token="p1")
        _, merged = self._drain(merger)

        self.assertLessEqual(peak[0], 2)
        self.assertEqual(
            sorted(item.label_text for item in merged["city"]),
            ["Town p2", "Town p3", "Town p4", "Town p5"],
        )
        self.assertEqual(merger.stats()["container_0"]["pages_loaded"], 5)

    def test_applying_the_same_page_twice_is_a_no_op(self) -> None:
        site = FakeSite({"p2": FakeDocument(FakeContainer(["Ogdenville"]))})
        merger = self._merger(site)
        merger.discover_and_merge(FakeContainer(["Springfield"], next_token="p2"), current_token="p1")
        self._drain(merger)
        records = FakeContainer(["Ogdenville", "Capital City"]).entries()
        replay = [FieldRecord.from_label("city", entry.label, entry.template()) for entry in records]

        self.assertEqual(merger.apply_page("container_0", "p2", replay), {})
        self.assertEqual(merger.finish_sweep("container_0", True), {})
        self.assertEqual(self._labels(), ["Springfield", "Shelbyville", "Ogdenville"])

    def test_failed_page_clears_loading_and_is_not_marked_loaded(self) -> None:
        site = FakeSite(
            {
                "p2": FakeDocument(FakeContainer(["Ogdenville"], next_token="p3")),
                "p3": FakeDocument(FakeContainer(["Never Seen"])),
            },
            failing=("p2",),
        )
        merger = self._merger(site)

        merger.discover_and_merge(FakeContainer(["Springfield"], next_token="p2"), current_token="p1")
        _, merged = self._drain(merger)

        data = merger.container_data("container_0")
        self.assertFalse(data.is_loading)
        self.assertFalse(data.last_sweep_ok)
        self.assertNotIn("p2", data.pages_loaded)
        self.assertEqual(merged, {})

        site.failing.clear()
        self.assertTrue(merger.discover_and_merge(FakeContainer(["Springfield"], next_token="p2"), current_token="p1"))
        _, merged = self._drain(merger)
        self.assertEqual([item.label_text for item in merged["city"]], ["Ogdenville", "Never Seen"])
        self.assertEqual(site.fetched, ["p2", "p2", "p3"])

    def test_retry_walks_past_loaded_pages_to_the_failed_one(self) -> None:
        site = FakeSite(
            {
                "p2": FakeDocument(FakeContainer(["Ogdenville"], next_token="p3")),
                "p3": FakeDocument(FakeContainer(["North Haverbrook"], next_token="p4")),
                "p4": FakeDocument(FakeContainer(["Capital City"])),
            },
            failing=("p3",),
        )
        merger = self._merger(site)
        first_page = FakeContainer(["Springfield"], next_token="p2")

        merger.discover_and_merge(first_page, current_token="p1")
        _, merged = self._drain(merger)

        data = merger.container_data("container_0")
        self.assertFalse(data.last_sweep_ok)
        self.assertEqual(data.pages_loaded, {"p1", "p2"})
        self.assertEqual(data.next_tokens["p2"], "p3")
        self.assertEqual([item.label_text for item in merged["city"]], ["Ogdenville"])

        site.failing.clear()
        self.assertTrue(merger.discover_and_merge(first_page, current_token="p1"))
        _, merged = self._drain(merger)

        self.assertEqual(site.fetched, ["p2", "p3", "p3", "p4"])
        self.assertTrue(data.last_sweep_ok)
        self.assertEqual([item.label_text for item in merged["city"]], ["North Haverbrook", "Capital City"])
        self.assertEqual(
            self._labels(),
            ["Springfield", "Shelbyville", "Ogdenville", "North Haverbrook", "Capital City"],
        )

    def test_second_sweep_is_refused_while_loading(self) -> None:
        gate = threading.Event()

        def fetch(token: str) -> FakeDocument:
            gate.wait(2.0)
            return FakeDocument(FakeContainer(["Ogdenville"]))

        merger = PaginationMerger(
            self.context,
            fetch,
            materialize=MemoryEntry.from_template,
            post_event=self.events.put,
        )
        container = FakeContainer(["Springfield"], next_token="p2")

        self.assertTrue(merger.discover_and_merge(container))
        self.assertFalse(merger.discover_and_merge(container))
        self.assertTrue(merger.is_loading("container_0"))
        gate.set()
        self._drain(merger)
        self.assertFalse(merger.is_loading())

    def test_active_search_merges_each_page_immediately(self) -> None:
        self.searching.add("city")
        site = FakeSite({"p2": FakeDocument(FakeContainer(["Ogdenville"]))})
        merger = self._merger(site)

        merger.discover_and_merge(FakeContainer(["Springfield"], next_token="p2"), current_token="p1")
        pages, merged = self._drain(merger)

        self.assertEqual([item.label_text for item in pages[0][1]["city"]], ["Ogdenville"])
        self.assertEqual(merged, {})
        self.assertEqual(self._labels(), ["Springfield", "Shelbyville", "Ogdenville"])

    def test_records_for_unknown_groups_are_not_merged(self) -> None:
        site = FakeSite({"p2": FakeDocument(FakeContainer(["Lisa"], group="people"))})
        merger = self._merger(site)

        merger.discover_and_merge(FakeContainer(["Bart"], group="people", next_token="p2"))
        _, merged = self._drain(merger)

        self.assertEqual(merged, {})
        self.assertNotIn("people", self.context.registry)
        self.assertEqual(merger.stats()["container_0"]["total_items"], 2)

        merger.detach("container_0")
        self.assertIsNone(merger.container_data("container_0"))
        self.assertEqual(merger.stats(), {})


if __name__ == "__main__":
    unittest.main()
