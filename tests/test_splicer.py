import logging

import pytest

from autoHTMLillustrator import splicer
from autoHTMLillustrator.errors import SpliceConflictError
from autoHTMLillustrator.InsertionSpec import InsertionSpec

DOC = "<p>Intro</p><p>Body</p><p>Conclusion</p>"


def _spec(anchor):
    return InsertionSpec(anchor=anchor, keywords=["k"])


def test_fragments_land_after_their_anchors_in_any_input_order():
    intro = (_spec("<p>Intro</p>"), "[A]")
    outro = (_spec("<p>Conclusion</p>"), "[B]")
    expected = "<p>Intro</p>\n[A]\n<p>Body</p><p>Conclusion</p>\n[B]\n"

    assert splicer.splice(DOC, [intro, outro]) == expected
    assert splicer.splice(DOC, [outro, intro]) == expected


def test_missing_anchor_is_skipped_with_warning(caplog):
    caplog.set_level(logging.WARNING)
    report = splicer.splice_with_report(
        DOC, [(_spec("<p>Nowhere</p>"), "[X]"), (_spec("<p>Body</p>"), "[B]")]
    )

    assert report.document == "<p>Intro</p><p>Body</p>\n[B]\n<p>Conclusion</p>"
    assert report.skipped == 1
    assert report.warnings[0].anchor == "<p>Nowhere</p>"
    assert [s.anchor for s in report.inserted] == ["<p>Body</p>"]
    assert any("Insertion point not found" in rec.message for rec in caplog.records)


def test_first_occurrence_is_used():
    doc = "<p>A</p><p>A</p>"
    assert splicer.splice(doc, [(_spec("<p>A</p>"), "X")]) == "<p>A</p>\nX\n<p>A</p>"


def test_empty_fragment_is_not_inserted():
    assert splicer.splice(DOC, [(_spec("<p>Intro</p>"), "")]) == DOC


def test_anchor_text_inside_fragment_is_not_matched():
    # positions are computed on the input, so earlier fragments cannot capture later anchors
    entries = [(_spec("<p>Intro</p>"), "<p>Body</p>"), (_spec("<p>Body</p>"), "[B]")]
    assert splicer.splice(DOC, entries) == "<p>Intro</p>\n<p>Body</p>\n<p>Body</p>\n[B]\n<p>Conclusion</p>"


def _apply_back_to_front(document, entries):
    # one edit at a time, stable sort by descending insertion index
    located = [(splicer.insertion_index(document, spec.anchor), fragment) for spec, fragment in entries]
    for idx, fragment in sorted(located, key=lambda item: -item[0]):
        document = document[:idx] + "\n" + fragment + "\n" + document[idx:]
    return document


def test_shared_anchor_puts_later_entry_first_by_default():
    entries = [(_spec("<p>Body</p>"), "1"), (_spec("<p>Body</p>"), "2")]
    expected = "<p>Intro</p><p>Body</p>\n2\n\n1\n<p>Conclusion</p>"
    assert splicer.splice(DOC, entries) == expected
    assert _apply_back_to_front(DOC, entries) == expected


def test_default_matches_edit_by_edit_application():
    entries = [
        (_spec("<p>Conclusion</p>"), "c"),
        (_spec("<p>Intro</p>"), "a1"),
        (_spec("<p>Body</p>"), "b"),
        (_spec("<p>Intro</p>"), "a2"),
        (_spec("<p>Intro</p>"), "a3"),
    ]
    assert splicer.splice(DOC, entries) == _apply_back_to_front(DOC, entries)


def test_shared_anchor_input_order_on_request():
    entries = [(_spec("<p>Body</p>"), "1"), (_spec("<p>Body</p>"), "2")]
    assert splicer.splice(DOC, entries, tie_break=splicer.TIE_INPUT_ORDER) == (
        "<p>Intro</p><p>Body</p>\n1\n\n2\n<p>Conclusion</p>"
    )


def test_shared_anchor_can_be_an_error():
    entries = [(_spec("<p>Body</p>"), "1"), (_spec("<p>Body</p>"), "2")]
    with pytest.raises(SpliceConflictError):
        splicer.splice(DOC, entries, tie_break=splicer.TIE_ERROR)


def test_unknown_tie_break_rejected():
    with pytest.raises(ValueError):
        splicer.splice(DOC, [], tie_break="random")


def test_no_entries_returns_document_unchanged():
    assert splicer.splice(DOC, []) == DOC
