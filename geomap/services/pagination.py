# geomap/services/pagination.py
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Hashable, List, Optional

from ..core.errors import ProtocolViolation


@dataclass
class Page:
    items: List[Any]
    next: Any = None


def is_sentinel(marker: Any) -> bool:
    """0, None and '' all mean "no more pages"."""
    if isinstance(marker, bool):
        return False
    return marker is None or marker == 0 or marker == ""


@dataclass
class PageCursor:
    """
    Continuation marker for one list-all operation.

    Integer markers (offsets) must grow on every page; opaque tokens must not
    repeat. Anything else is a protocol violation rather than a reason to loop.
    """
    source: str
    value: Any = 0
    pages: int = 0
    seen: set = field(default_factory=set)

    @property
    def done(self) -> bool:
        return self.pages > 0 and is_sentinel(self.value)

    def advance(self, marker: Any) -> None:
        self.pages += 1
        if is_sentinel(marker):
            self.value = marker
            return
        if isinstance(marker, int) and isinstance(self.value, int) and not isinstance(marker, bool):
            if marker <= self.value:
                raise ProtocolViolation(self.source, f"cursor went from {self.value} to {marker}")
        else:
            key = marker if isinstance(marker, Hashable) else repr(marker)
            if key in self.seen:
                raise ProtocolViolation(self.source, f"cursor token {marker!r} repeated")
            self.seen.add(key)
        self.value = marker


async def paginate(
    source: str,
    fetch_page: Callable[[Any], Awaitable[Page]],
    max_pages: Optional[int] = None,
) -> List[Any]:
    """
    Drive fetch_page(cursor) until the backend returns a sentinel marker.
    Pages are requested strictly one after another.
    """
    cursor = PageCursor(source=source)
    items: List[Any] = []
    while not cursor.done:
        if max_pages is not None and cursor.pages >= max_pages:
            raise ProtocolViolation(source, f"more than {max_pages} pages")
        page = await fetch_page(cursor.value)
        items.extend(page.items)
        cursor.advance(page.next)
    return items
