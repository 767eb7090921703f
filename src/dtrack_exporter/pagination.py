"""Exhaustive pagination over Dependency-Track list endpoints."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Generic, Optional, TypeVar

from .errors import CancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100


@dataclass
class Page(Generic[T]):
    """One page of a list endpoint and the total reported alongside it."""

    items: list[T] = field(default_factory=list)
    # None when the server did not report a total
    total_count: Optional[int] = None


PageFunc = Callable[[int, int], Page[T]]


def fetch_all(
    fetch_page: PageFunc[T],
    page_size: int = DEFAULT_PAGE_SIZE,
    cancel: Optional[threading.Event] = None,
) -> list[T]:
    """Fetch every item of a paged resource.

    Pages are requested with a 1-based page number until one of:
    - the number of items fetched reaches the last reported total (when
      the server reports one),
    - a page comes back empty,
    - a page comes back shorter than ``page_size``.

    The total reported by the server is re-read on every page and is not
    assumed to be stable across requests.

    Args:
        fetch_page: Callable taking ``(page_size, page_number)`` and
            returning a Page.
        page_size: Number of items requested per page.
        cancel: Event that aborts the walk when set.

    Returns:
        All items in upstream order. Duplicates are not removed.

    Raises:
        CancelledError: If ``cancel`` was set before a request.
        Exception: Whatever ``fetch_page`` raised; partial results are dropped.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    items: list[T] = []
    page_number = 1

    while True:
        if cancel is not None and cancel.is_set():
            raise CancelledError(f"Pagination cancelled before page {page_number}")

        page = fetch_page(page_size, page_number)
        items.extend(page.items)

        logger.debug(
            "Fetched page %d (%d items, %d/%s total)",
            page_number,
            len(page.items),
            len(items),
            page.total_count,
        )

        if page.total_count is not None and len(items) >= page.total_count:
            break
        if len(page.items) < page_size:
            # Total drifted or was never reached; the resource is exhausted
            if page.items:
                logger.debug(
                    "Short page %d ended walk at %d of %s reported items",
                    page_number,
                    len(items),
                    page.total_count,
                )
            break

        page_number += 1

    return items


def for_each(
    fetch_page: PageFunc[T],
    visit: Callable[[T], None],
    page_size: int = DEFAULT_PAGE_SIZE,
    cancel: Optional[threading.Event] = None,
) -> int:
    """Drain a paged resource, then call ``visit`` on every item.

    Nothing is visited if the walk fails.

    Returns:
        Number of items visited.
    """
    items = fetch_all(fetch_page, page_size=page_size, cancel=cancel)
    for item in items:
        visit(item)
    return len(items)
