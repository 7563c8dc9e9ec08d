from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, Tuple


@dataclass(frozen=True)
class ListState:
    """Paginated view over a collection that is always replaced wholesale."""

    rows: Tuple[Any, ...] = ()
    page: int = 1
    page_size: int = 10

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be positive")
        if self.page < 1:
            raise ValueError("page must be positive")

    @property
    def count(self) -> int:
        return len(self.rows)

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(len(self.rows) / self.page_size))

    @property
    def current_page(self) -> int:
        return min(self.page, self.total_pages)

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    def reload(self, rows: Iterable[Any], *, reset_page: bool = False) -> "ListState":
        new_rows = tuple(rows)
        if reset_page:
            return replace(self, rows=new_rows, page=1)
        total_pages = max(1, math.ceil(len(new_rows) / self.page_size))
        return replace(self, rows=new_rows, page=min(self.page, total_pages))

    def slice(self) -> Tuple[Any, ...]:
        start = (self.current_page - 1) * self.page_size
        return self.rows[start : start + self.page_size]

    def next(self) -> "ListState":
        return replace(self, page=min(self.total_pages, self.current_page + 1))

    def prev(self) -> "ListState":
        return replace(self, page=max(1, self.current_page - 1))

    def showing(self) -> Tuple[int, int, int]:
        """(first, last, total) row numbers on the current page; (0, 0, 0) when empty."""
        if not self.rows:
            return 0, 0, 0
        first = (self.current_page - 1) * self.page_size + 1
        last = min(self.current_page * self.page_size, len(self.rows))
        return first, last, len(self.rows)


def rows_from_payload(payload: Any) -> Tuple[Any, ...]:
    """Collections that are not a JSON array load as empty."""
    if isinstance(payload, list):
        return tuple(payload)
    return ()
