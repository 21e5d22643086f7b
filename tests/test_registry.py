from docscan.config import ScanLimits
from docscan.ingest import build_items
from docscan.models import Document
from docscan.registry import CursorRegistry


def _registry() -> CursorRegistry:
    items = build_items(
        [
            {"type": "heading", "level": 1, "markdown": "# Storms"},
            {"type": "paragraph", "markdown": "A gale hit the coast."},
            {"type": "paragraph", "markdown": "Calm seas followed."},
            {"type": "paragraph", "markdown": "Another GALE arrived."},
        ]
    )
    return CursorRegistry(Document(doc_id="d", items=items), ScanLimits(max_elements=10, max_bytes=10_000))


def test_names_share_one_counter() -> None:
    registry = _registry()
    assert registry.create_cursor() == "cursor_0"
    assert registry.create_keyword_cursor(["gale"]) == "keyword_cursor_1"
    assert registry.create_query_cursor("calm") == "query_cursor_2"
    assert registry.names() == ["cursor_0", "keyword_cursor_1", "query_cursor_2"]


def test_keyword_cursor_filters_items() -> None:
    registry = _registry()
    name = registry.create_keyword_cursor(["gale"], include_headings=False)
    cursor = registry.get(name)
    window = cursor.next_window()
    assert [item.label for item in window.items] == ["1.p1", "1.p3"]
    assert cursor.filter_description == "Keywords: gale"


def test_plain_cursor_resumes_after_pointer() -> None:
    registry = _registry()
    cursor = registry.get(registry.create_cursor(start_after="1.p1", include_headings=False))
    assert [item.label for item in cursor.next_window().items] == ["1.p2", "1.p3"]


def test_cursors_are_independent() -> None:
    registry = _registry()
    first = registry.get(registry.create_cursor())
    second = registry.get(registry.create_cursor())
    first.next_window()
    assert first.is_complete
    assert not second.is_complete
    assert len(second.next_window().items) == 4


def test_missing_cursor_raises_key_error() -> None:
    registry = _registry()
    name = registry.create_cursor()
    registry.remove(name)
    registry.remove(name)
    try:
        registry.get(name)
        raise AssertionError("Expected KeyError.")
    except KeyError as exc:
        assert "cursor_not_found: cursor_0" in str(exc)
