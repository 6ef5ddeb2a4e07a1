"""
Cursor pagination over Ozon list endpoints.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from ozonator.core.exceptions import PaginationLimitError

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 200


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    next_cursor: str = ""
    total: Optional[int] = None


FetchPage = Callable[[str], Awaitable[Page]]
OnPage = Callable[[List[Any], int], Awaitable[None]]


async def paginate(
    fetch_page: FetchPage,
    max_pages: int = DEFAULT_MAX_PAGES,
    on_page: Optional[OnPage] = None,
) -> Tuple[List[Any], int]:
    """
    Fetch pages one at a time until the cursor runs out.

    Stops when the next cursor is empty or equal to the one just used, when a
    page comes back empty, or when the running count reaches the reported
    total. Raises PaginationLimitError if `max_pages` pages were fetched and
    the list still had not ended.

    `on_page(items, page_number)` runs after every page, before the next one
    is requested.

    Returns (all items, number of pages fetched).
    """
    collected: List[Any] = []
    cursor = ""
    pages = 0

    while pages < max_pages:
        page = await fetch_page(cursor)
        pages += 1
        items = list(page.items or [])
        collected.extend(items)

        logger.info(f"Fetched page {pages}: {len(items)} items (total so far {len(collected)})")

        if on_page:
            await on_page(items, pages)

        next_cursor = str(page.next_cursor or "")

        if not items:
            return collected, pages
        if page.total is not None and len(collected) >= page.total:
            return collected, pages
        if not next_cursor or next_cursor == cursor:
            return collected, pages

        cursor = next_cursor

    logger.error(f"Pagination ceiling of {max_pages} pages reached, aborting")
    raise PaginationLimitError(max_pages)
