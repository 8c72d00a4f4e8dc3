"""Insert rendered fragments into the original document after their anchors.

Insertion points are computed against the untouched input (first literal
occurrence of the anchor, index just past it). The output is assembled in
one pass from input slices interleaved with fragments, which gives the same
text as applying `doc[:i] + "\\n" + fragment + "\\n" + doc[i:]` for each entry
after a stable sort by descending index. With that order, fragments sharing
an index end up with the later entry first (`TIE_REVERSE`, the default).
`TIE_INPUT_ORDER` keeps them in input order instead.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from autoHTMLillustrator.errors import SpliceConflictError, SpliceWarning
from autoHTMLillustrator.InsertionSpec import InsertionSpec, short_text

# How fragments sharing one insertion index are ordered
TIE_INPUT_ORDER = "input"
TIE_REVERSE = "reverse"
TIE_ERROR = "error"
TIE_BREAKS = (TIE_INPUT_ORDER, TIE_REVERSE, TIE_ERROR)


@dataclass
class SpliceReport:
    document: str
    inserted: List[InsertionSpec] = field(default_factory=list)
    warnings: List[SpliceWarning] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.warnings)


def insertion_index(document: str, anchor: str) -> int:
    """Index right after the first occurrence of `anchor`, or -1."""
    if not anchor:
        return -1
    pos = document.find(anchor)
    return -1 if pos == -1 else pos + len(anchor)


def splice_with_report(
    document: str,
    entries: Sequence[Tuple[InsertionSpec, str]],
    tie_break: str = TIE_REVERSE,
) -> SpliceReport:
    if tie_break not in TIE_BREAKS:
        raise ValueError(f"Unknown tie_break '{tie_break}', expected one of {TIE_BREAKS}")

    report = SpliceReport(document=document)
    located = []
    for order, (spec, fragment) in enumerate(entries):
        if not fragment:
            continue
        idx = insertion_index(document, spec.anchor)
        if idx == -1:
            warning = SpliceWarning(spec.anchor)
            logging.warning("Insertion point not found: \"%s\"", short_text(spec.anchor))
            report.warnings.append(warning)
            continue
        located.append((idx, order, spec, fragment))

    if tie_break == TIE_ERROR:
        seen = {}
        for idx, _order, spec, _fragment in located:
            if idx in seen:
                raise SpliceConflictError(
                    f"Anchors {short_text(seen[idx].anchor)!r} and {short_text(spec.anchor)!r} "
                    f"resolve to the same position {idx}"
                )
            seen[idx] = spec

    direction = -1 if tie_break == TIE_REVERSE else 1
    located.sort(key=lambda item: (item[0], direction * item[1]))

    parts = []
    cursor = 0
    for idx, _order, spec, fragment in located:
        parts.append(document[cursor:idx])
        parts.append("\n" + fragment + "\n")
        cursor = idx
        report.inserted.append(spec)
    parts.append(document[cursor:])
    report.document = "".join(parts)
    return report


def splice(
    document: str,
    entries: Sequence[Tuple[InsertionSpec, str]],
    tie_break: str = TIE_REVERSE,
) -> str:
    """Return a new document with every fragment placed after its anchor.

    Entries whose anchor is not in `document` are skipped with a warning.
    """
    return splice_with_report(document, entries, tie_break).document
