"""Unit tests for the list-all pagination cursor."""
import pytest

from geomap.core.errors import ProtocolViolation
from geomap.services.pagination import Page, PageCursor, is_sentinel, paginate


def pager(pages):
    """fetch_page that serves `pages` in order and records the cursors it got."""
    cursors = []
    it = iter(pages)

    async def fetch_page(cursor):
        cursors.append(cursor)
        return next(it)

    return fetch_page, cursors


@pytest.mark.asyncio
async def test_accumulates_until_zero_sentinel():
    fetch_page, cursors = pager([
        Page(items=[1, 2, 3], next=3),
        Page(items=[4, 5], next=5),
        Page(items=[6], next=0),
    ])
    items = await paginate("crm", fetch_page)
    assert items == [1, 2, 3, 4, 5, 6]
    assert cursors == [0, 3, 5]


@pytest.mark.asyncio
async def test_single_page_without_next():
    fetch_page, cursors = pager([Page(items=["a"], next=None)])
    assert await paginate("crm", fetch_page) == ["a"]
    assert cursors == [0]


@pytest.mark.asyncio
async def test_empty_first_page():
    fetch_page, cursors = pager([Page(items=[], next=0)])
    assert await paginate("crm", fetch_page) == []
    assert len(cursors) == 1


@pytest.mark.asyncio
async def test_opaque_tokens():
    fetch_page, cursors = pager([
        Page(items=[1], next="abc"),
        Page(items=[2], next="def"),
        Page(items=[3], next=""),
    ])
    assert await paginate("userside", fetch_page) == [1, 2, 3]
    assert cursors == [0, "abc", "def"]


@pytest.mark.asyncio
async def test_cursor_not_advancing_is_a_violation():
    fetch_page, _ = pager([
        Page(items=[1], next=50),
        Page(items=[2], next=50),
        Page(items=[3], next=0),
    ])
    with pytest.raises(ProtocolViolation):
        await paginate("crm", fetch_page)


@pytest.mark.asyncio
async def test_cursor_going_back_is_a_violation():
    fetch_page, _ = pager([Page(items=[1], next=50), Page(items=[2], next=10)])
    with pytest.raises(ProtocolViolation):
        await paginate("crm", fetch_page)


@pytest.mark.asyncio
async def test_repeated_token_is_a_violation():
    fetch_page, _ = pager([Page(items=[1], next="a"), Page(items=[2], next="b"), Page(items=[3], next="a")])
    with pytest.raises(ProtocolViolation):
        await paginate("utm5", fetch_page)


@pytest.mark.asyncio
async def test_max_pages():
    fetch_page, cursors = pager([Page(items=[i], next=i + 1) for i in range(10)])
    with pytest.raises(ProtocolViolation):
        await paginate("crm", fetch_page, max_pages=3)
    assert len(cursors) == 3


def test_sentinels():
    assert is_sentinel(0)
    assert is_sentinel(None)
    assert is_sentinel("")
    assert not is_sentinel(False)
    assert not is_sentinel(50)
    assert not is_sentinel("0")


def test_cursor_lifecycle():
    cursor = PageCursor(source="crm")
    assert not cursor.done
    cursor.advance(50)
    assert cursor.value == 50 and not cursor.done
    cursor.advance(0)
    assert cursor.done
    assert cursor.pages == 2
