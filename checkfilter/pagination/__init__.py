"""Pagination sweeps and merge.

The HTTP/HTML page source lives in :mod:`checkfilter.pagination.html`.
"""

from .merger import (
    PARALLEL_PAGE_FETCHES,
    PageContainer,
    PageDocument,
    PageFetcher,
    PaginatedContainerData,
    PaginationMerger,
    records_from_container,
)

__all__ = [
    "PARALLEL_PAGE_FETCHES",
    "PageContainer",
    "PageDocument",
    "PageFetcher",
    "PaginatedContainerData",
    "PaginationMerger",
    "records_from_container",
]
