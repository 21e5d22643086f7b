from docscan.pointer import (
    Pointer,
    PointerCounter,
    PointerParseError,
    parse_pointer,
    pointer_key,
    try_parse_pointer,
)


def test_parse_canonical_label() -> None:
    pointer = parse_pointer("1.2.p3")
    assert pointer.numbers == (1, 2)
    assert pointer.paragraph == 3
    assert pointer.canonical() == "1.2.p3"
    assert str(pointer) == "1.2.p3"
    assert pointer.level == 2
    assert pointer.has_paragraph


def test_parse_normalizes_case_and_missing_separator() -> None:
    assert parse_pointer("1.2P3").canonical() == "1.2.p3"
    assert parse_pointer("1.2p3").canonical() == "1.2.p3"
    assert parse_pointer("P7").canonical() == "p7"
    assert parse_pointer("  4.1  ").canonical() == "4.1"


def test_parse_legacy_and_json_forms() -> None:
    expected = parse_pointer("1.2.p3")
    assert parse_pointer("12:1.2.p3") == expected
    assert parse_pointer('{"label": "1.2.p3"}') == expected
    assert parse_pointer('{"Label": "1.2P3", "extra": 1}') == expected


def test_parse_rejects_invalid_labels() -> None:
    for raw in ["", "   ", "abc", "1..2", "p", "1.2.p", "1.2.p-1", "12:", '{"name": "1"}', "[1]", "{bad"]:
        try:
            parse_pointer(raw)
            raise AssertionError(f"Expected PointerParseError for {raw!r}.")
        except PointerParseError:
            pass
    assert try_parse_pointer("nope") is None
    assert try_parse_pointer(None) is None


def test_round_trip_through_canonical_form() -> None:
    for label in ["1", "1.2", "1.2.p3", "p7", "3.P10", "9:2.p1", '{"label":"5.p2"}']:
        parsed = parse_pointer(label)
        assert parse_pointer(parsed.canonical()) == parsed


def test_equality_is_case_insensitive_on_canonical_form() -> None:
    assert parse_pointer("1.2.P3") == parse_pointer("1.2.p3")
    assert pointer_key("1.2.P3") == pointer_key("1.2.p3") == "1.2.p3"


def test_container_contains_descendants_only() -> None:
    chapter = parse_pointer("1")
    assert chapter.contains(parse_pointer("1.2.p3"))
    assert chapter.contains(parse_pointer("1"))
    assert not chapter.contains(parse_pointer("2.p1"))
    assert not parse_pointer("1.2").contains(parse_pointer("1"))
    assert not parse_pointer("1.2").contains(parse_pointer("1.3.p1"))


def test_leaf_pointer_is_not_a_container() -> None:
    leaf = parse_pointer("1.2.p3")
    assert leaf.contains(parse_pointer("1.2.p3"))
    assert not leaf.contains(parse_pointer("1.2.p4"))
    assert not parse_pointer("p7").contains(parse_pointer("p7"))


def test_adjacency_requires_same_heading_path() -> None:
    a = parse_pointer("1.p2")
    assert a.is_adjacent(parse_pointer("1.p4"), tolerance=2)
    assert not a.is_adjacent(parse_pointer("1.p4"), tolerance=1)
    assert not a.is_adjacent(parse_pointer("2.p2"), tolerance=5)
    assert not a.is_adjacent(parse_pointer("1"), tolerance=5)
    assert not a.is_adjacent(parse_pointer("1.p2"), tolerance=-1)
    assert parse_pointer("p1").is_adjacent(parse_pointer("p2"), tolerance=1)


def test_pointer_requires_some_component() -> None:
    try:
        Pointer()
        raise AssertionError("Expected PointerParseError for an empty pointer.")
    except PointerParseError:
        pass


def test_to_json_carries_label() -> None:
    assert parse_pointer("2.p1").to_json() == '{"label": "2.p1"}'


def test_counter_follows_heading_nesting() -> None:
    counter = PointerCounter()
    assert counter.next_leaf().canonical() == "p1"
    assert counter.enter_heading(1).canonical() == "1"
    assert counter.next_leaf().canonical() == "1.p1"
    assert counter.next_leaf().canonical() == "1.p2"
    assert counter.enter_heading(2).canonical() == "1.1"
    assert counter.next_leaf().canonical() == "1.1.p1"
    assert counter.enter_heading(2).canonical() == "1.2"
    assert counter.enter_heading(1).canonical() == "2"
    assert counter.next_leaf().canonical() == "2.p1"


def test_counter_zero_fills_skipped_levels() -> None:
    counter = PointerCounter()
    assert counter.enter_heading(3).canonical() == "0.0.1"
    assert counter.enter_heading(0).canonical() == "1"
