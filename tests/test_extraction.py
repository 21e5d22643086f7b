from docscan.extraction import (
    MalformedResponseError,
    escape_control_chars,
    extract_adjudicator_decision,
    extract_scanner_decision,
    iter_json_candidates,
    normalize_decision,
    parse_candidate,
)


def test_extracts_decision_from_prose_with_raw_newline() -> None:
    raw = (
        'Note: {"decision":"continue","newEvidence":[{"pointer":"1.p1",'
        '"excerpt":"a\nb","reason":"x"}]} thanks'
    )
    decision = extract_scanner_decision(raw)
    assert decision.decision == "continue"
    assert decision.new_evidence[0].pointer == "1.p1"
    assert decision.new_evidence[0].excerpt == "a\nb"
    assert decision.new_evidence[0].rationale == "x"
    assert not decision.multiple_candidates


def test_extracts_from_code_fence() -> None:
    raw = '```json\n{"decision": "done", "newEvidence": []}\n```'
    decision = extract_scanner_decision(raw)
    assert decision.decision == "done"
    assert decision.is_terminal


def test_prefers_first_terminal_candidate() -> None:
    raw = (
        '{"decision":"continue","newEvidence":[{"pointer":"p1","excerpt":"a"}]}\n'
        '{"decision":"done","newEvidence":[{"pointer":"p2","excerpt":"b"}]}\n'
        '{"decision":"not_found"}'
    )
    decision = extract_scanner_decision(raw)
    assert decision.decision == "done"
    assert decision.new_evidence[0].pointer == "p2"
    assert decision.multiple_candidates


def test_takes_first_candidate_when_none_is_terminal() -> None:
    raw = '{"decision":"continue","progress":"one"} {"decision":"continue","progress":"two"}'
    decision = extract_scanner_decision(raw)
    assert decision.progress == "one"
    assert decision.multiple_candidates


def test_braces_inside_strings_do_not_split_candidates() -> None:
    raw = '{"decision":"continue","newEvidence":[{"pointer":"p1","excerpt":"a } b { c \\" }"}]}'
    candidates = list(iter_json_candidates(raw))
    assert len(candidates) == 1
    assert extract_scanner_decision(raw).new_evidence[0].excerpt == 'a } b { c " }'


def test_stray_brace_in_prose_is_skipped() -> None:
    raw = 'Use { carefully. {"decision":"done"}'
    assert extract_scanner_decision(raw).decision == "done"


def test_object_nested_in_unparseable_braces_is_found() -> None:
    raw = 'Plan {step one: {"decision":"done","newEvidence":[]}}'
    decision = extract_scanner_decision(raw)
    assert decision.decision == "done"
    assert decision.raw == '{"decision":"done","newEvidence":[]}'

    raw = 'Notes {draft {"decision":"continue"} then {"decision":"not_found"}} end'
    candidates = [payload["decision"] for _, payload in iter_json_candidates(raw)]
    assert candidates == ["continue", "not_found"]
    assert extract_scanner_decision(raw).decision == "not_found"


def test_legacy_action_field_and_unknown_values() -> None:
    assert extract_scanner_decision('{"action":"stop"}').decision == "done"
    assert extract_scanner_decision('{"action":"continue"}').decision == "continue"
    unknown = extract_scanner_decision('{"decision":"maybe"}')
    assert unknown.decision == "continue"
    assert unknown.raw_decision == "maybe"
    assert normalize_decision(" DONE ") == "done"
    assert normalize_decision(None) == "continue"


def test_evidence_field_name_fallbacks() -> None:
    raw = (
        '{"decision":"continue","newEvidence":['
        '{"pointer":"p1","markdown":"from markdown"},'
        '{"pointer":"p2","text":"from text","rationale":"why"},'
        '{"excerpt":"no pointer"},'
        '"not an object"]}'
    )
    evidence = extract_scanner_decision(raw).new_evidence
    assert [e.pointer for e in evidence] == ["p1", "p2"]
    assert evidence[0].excerpt == "from markdown"
    assert evidence[1].excerpt == "from text"
    assert evidence[1].rationale == "why"


def test_progress_and_need_more_context() -> None:
    decision = extract_scanner_decision(
        '{"decision":"continue","progress":"2 found","needMoreContext":true}'
    )
    assert decision.progress == "2 found"
    assert decision.need_more_context


def test_zero_parseable_candidates_raise() -> None:
    for raw in ["", "no json here", "{not json}", '{"newEvidence": []}', "[1, 2]"]:
        try:
            extract_scanner_decision(raw)
            raise AssertionError(f"Expected MalformedResponseError for {raw!r}.")
        except MalformedResponseError as exc:
            assert exc.raw == raw


def test_control_chars_escaped_only_inside_strings() -> None:
    candidate = '{\n\t"a": "x\ty\rz"\n}'
    sanitized = escape_control_chars(candidate)
    assert sanitized == '{\n\t"a": "x\\ty\\rz"\n}'
    assert parse_candidate(candidate) == {"a": "x\ty\rz"}
    assert parse_candidate('"just a string"') is None


def test_adjudicator_decision_fields() -> None:
    raw = (
        'Here you go: {"decision":"success","semanticPointerFrom":"1.p2",'
        '"whyThis":"best match","markdown":"text","summary":"done"}'
    )
    verdict = extract_adjudicator_decision(raw)
    assert verdict.is_success
    assert verdict.chosen_pointer == "1.p2"
    assert verdict.rationale == "best match"
    assert verdict.markdown == "text"
    assert verdict.summary == "done"


def test_adjudicator_pointer_field_fallback_and_terminal_preference() -> None:
    raw = '{"decision":"thinking"} {"decision":"SUCCESS","chosenPointer":"p3","excerpt":"e"}'
    verdict = extract_adjudicator_decision(raw)
    assert verdict.decision == "success"
    assert verdict.chosen_pointer == "p3"
    assert verdict.excerpt == "e"
    assert verdict.multiple_candidates


def test_adjudicator_without_decision_raises() -> None:
    try:
        extract_adjudicator_decision('{"semanticPointerFrom":"p1"}')
        raise AssertionError("Expected MalformedResponseError.")
    except MalformedResponseError:
        pass
