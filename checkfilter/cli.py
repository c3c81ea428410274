"""Command-line front door for checkfilter.

Loads entries from a label file or from a paginated HTML page, runs one
search through the worker pool, and prints the visible entries with scores.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import load_settings
from .controller import FilterController
from .entries.handles import EntryHandle, MemoryEntry
from .pagination.merger import PageFetcher

DEFAULT_GROUP = "items"


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _unit_float(value: str) -> float:
    """argparse type for a score threshold in ``[0, 1]``."""
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from exc
    if parsed < 0 or parsed > 1:
        raise argparse.ArgumentTypeError("value must be between 0 and 1")
    return parsed


def read_labels(path: Path) -> list[str]:
    text = path.read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


def load_file_groups(path: Path, group: str, checked: set[str]) -> dict[str, list[EntryHandle]]:
    entries: list[EntryHandle] = [
        MemoryEntry(label=label, group_name=group, checked=label in checked) for label in read_labels(path)
    ]
    return {group: entries}


def load_url_groups(
    controller: FilterController,
    fetch_page: PageFetcher,
    url: str,
    checked: set[str],
) -> dict[str, list[EntryHandle]]:
    """Fetch ``url``, register its entries per group, and start pagination sweeps."""
    document = fetch_page(url)
    groups: dict[str, list[EntryHandle]] = {}
    containers = document.containers()
    for container in containers:
        for entry in container.entries():
            if (entry.get_label() or "").strip() in checked:
                entry.set_checked(True)
            groups.setdefault(entry.group_name, []).append(entry)
    for name, entries in groups.items():
        controller.register_group(name, entries)
    for position, container in enumerate(containers):
        controller.discover_pages(container, position=position, current_token=url)
    return groups


def render_results(controller: FilterController) -> str:
    out: list[str] = []
    for name in controller.registry.names():
        items = controller.visible_items(name)
        total = len(controller.registry.items(name))
        out.append(f"# {name} ({len(items)}/{total})\n")
        for item in items:
            score = controller.score_of(name, item.id)
            marker = "x" if item.is_checked else " "
            score_text = f"{score:.2f}" if score is not None else "-"
            out.append(f"[{marker}] {score_text:>5}  {item.label_text}\n")
    return "".join(out)


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments, run one search, and print visible entries."""
    parser = argparse.ArgumentParser(description="Fuzzy-filter checkbox list entries.")
    parser.add_argument("path", nargs="?", default=None, help="File with one label per line.")
    parser.add_argument("--url", default=None, help="Load entries from a paginated HTML page instead.")
    parser.add_argument("--query", "-q", default="", help="Search term (empty shows everything).")
    parser.add_argument("--group", default=DEFAULT_GROUP, help="Group name for entries read from a file.")
    parser.add_argument("--checked", action="append", default=[], metavar="LABEL", help="Mark LABEL as checked.")
    parser.add_argument("--threshold", type=_unit_float, default=None, help="Score threshold (default from config).")
    parser.add_argument("--pool-size", type=_positive_int, default=None, help="Number of scoring workers.")
    parser.add_argument("--timeout", type=float, default=30.0, help="Seconds to wait for searches and pages.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    if (args.path is None) == (args.url is None):
        raise SystemExit("Pass exactly one of PATH or --url.")

    settings = load_settings()
    if args.threshold is not None:
        settings = replace(settings, score_threshold=args.threshold)
    if args.pool_size is not None:
        settings = replace(settings, worker_pool_size=args.pool_size)
    if args.debug:
        settings = replace(settings, debug=True)

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    checked = {label.strip() for label in args.checked}
    if args.url is not None:
        from .entries.html import HtmlEntry
        from .pagination.html import RequestsPageFetcher

        fetch_page: PageFetcher | None = RequestsPageFetcher()
        materialize = HtmlEntry.from_html
    else:
        path = Path(args.path)
        if not path.is_file():
            raise SystemExit(f"Path not found: {path}")
        fetch_page = None
        materialize = MemoryEntry.from_template

    with FilterController(settings=settings, fetch_page=fetch_page, materialize=materialize) as controller:
        if fetch_page is not None:
            load_url_groups(controller, fetch_page, args.url, checked)
        else:
            for name, entries in load_file_groups(path, args.group, checked).items():
                controller.register_group(name, entries)

        controller.run_until_idle(timeout_seconds=args.timeout)
        for name in controller.registry.names():
            controller.filter(name, args.query)
        if not controller.run_until_idle(timeout_seconds=args.timeout):
            print("warning: timed out waiting for results", file=sys.stderr)
        sys.stdout.write(render_results(controller))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
