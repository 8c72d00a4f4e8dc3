import html
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from autoHTMLillustrator import ai_tasks
from autoHTMLillustrator.errors import EmptyDocumentError
from autoHTMLillustrator.llm_client import has_credentials
from autoHTMLillustrator.InsertionSpec import (
    GRID_2,
    GRID_3,
    InsertionSpec,
    clean_keywords,
    normalize_layout,
    normalize_source,
)

MARKER = "marker"
SEMANTIC = "semantic"
HEURISTIC = "heuristic"

# <!-- IMAGE: keywords="desk setup, mac mini", layout="grid-3" -->
MARKER_RE = re.compile(r"<!--\s*IMAGE:\s*(.*?)\s*-->", re.IGNORECASE)
ATTR_RE = re.compile(r"""([A-Za-z_]+)\s*=\s*(["'])(.*?)\2""")
HEADING_RE = re.compile(r"<(h[23])\b[^>]*>(.*?)</\1\s*>", re.IGNORECASE | re.DOTALL)
TAG_RE = re.compile(r"<[^>]+>")

IMAGE_INDICATORS = ("<img", "blog-image-container")
WINDOW_BEFORE = 200
WINDOW_AFTER = 500
MAX_HEURISTIC_SECTIONS = 7


@dataclass
class ExtractionResult:
    title: str
    specs: List[InsertionSpec] = field(default_factory=list)
    strategy: str = ""

    def to_dict(self):
        return {
            "title": self.title,
            "strategy": self.strategy,
            "sections": [spec.to_dict() for spec in self.specs],
        }


def extract_markers(document: str) -> List[InsertionSpec]:
    """Specs from IMAGE annotation comments, in document order.

    The anchor is the whole comment, so images land right after it.
    Markers without keywords are dropped.
    """
    specs = []
    for match in MARKER_RE.finditer(document or ""):
        attrs = {key.lower(): value for key, _quote, value in ATTR_RE.findall(match.group(1))}
        caption = attrs.get("caption", "").strip()
        spec = InsertionSpec(
            anchor=match.group(0),
            keywords=clean_keywords(attrs.get("keywords", "")),
            layout=normalize_layout(attrs.get("layout"), default=GRID_2),
            caption=caption,
            alt_text=(attrs.get("alttext") or attrs.get("alt") or caption).strip(),
            reason="Author marker",
            explicit_source=normalize_source(attrs.get("source")),
        )
        if spec.is_valid():
            specs.append(spec)
        else:
            logging.debug("Ignoring IMAGE marker without keywords: %s", match.group(0))
    return specs


def heading_text(raw: str) -> str:
    return " ".join(html.unescape(TAG_RE.sub("", raw)).split())


def has_image_nearby(document: str, start: int, end: int) -> bool:
    window = document[max(0, start - WINDOW_BEFORE): min(len(document), end + WINDOW_AFTER)].lower()
    return any(indicator in window for indicator in IMAGE_INDICATORS)


def keyword_variants(text: str) -> List[str]:
    return [text, f"{text} detail", f"{text} background"]


def extract_headings(document: str, limit: int = MAX_HEURISTIC_SECTIONS) -> List[InsertionSpec]:
    """Rule-based fallback: one slot after every h2/h3 heading that has no
    image close by, alternating grid-3/grid-2, at most `limit` slots."""
    specs = []
    for match in HEADING_RE.finditer(document or ""):
        text = heading_text(match.group(2))
        if not text:
            continue
        if has_image_nearby(document, match.start(), match.end()):
            logging.debug("Heading already illustrated, skipped: %s", text)
            continue
        specs.append(InsertionSpec(
            anchor=match.group(0),
            keywords=keyword_variants(text),
            layout=GRID_3 if len(specs) % 2 == 0 else GRID_2,
            caption=text,
            alt_text=text,
            reason=f"Heading rule ({text})",
        ))
    return specs[:limit]


class SectionExtractor:
    """Decides where images go, trying markers, then the semantic provider
    (only when asked for and configured), then the heading rules. The first
    strategy that yields a slot wins."""

    def __init__(
        self,
        semantic: Optional[Callable] = None,
        semantic_available: Optional[Callable[[], bool]] = None,
        max_heuristic_sections: int = MAX_HEURISTIC_SECTIONS,
    ):
        self.semantic = semantic or ai_tasks.analyze_sections
        self._semantic_available = semantic_available or (lambda: has_credentials(ai_tasks.analysis_model()))
        self.max_heuristic_sections = max_heuristic_sections

    def semantic_available(self) -> bool:
        return bool(self._semantic_available())

    def extract(self, document: str, use_ai: bool = False) -> ExtractionResult:
        if not document or not document.strip():
            raise EmptyDocumentError("Document is empty")

        specs = extract_markers(document)
        if specs:
            logging.info("Markers found: skipping analysis, %d section(s)", len(specs))
            return ExtractionResult("Marker-based analysis", specs, MARKER)

        if use_ai:
            if self.semantic_available():
                result = self._extract_semantic(document)
                if result.specs:
                    return result
                logging.info("Semantic analysis proposed no usable section; using heading rules")
            else:
                logging.info("No credentials for the analysis model; using heading rules")

        specs = extract_headings(document, self.max_heuristic_sections)
        logging.info("Heading rules: %d section(s)", len(specs))
        return ExtractionResult("Rule-based analysis", specs, HEURISTIC)

    def _extract_semantic(self, document: str) -> ExtractionResult:
        # ExtractionError propagates: an explicit AI request must not silently degrade
        analysis, _usage = self.semantic(document)
        specs = []
        for entry in analysis.get("sections", []):
            spec = InsertionSpec.from_dict(entry)
            if spec is None:
                logging.warning("Dropping semantic section without anchor/keywords: %r", entry)
                continue
            specs.append(spec)
        title = str(analysis.get("title") or "")
        return ExtractionResult(title, specs, SEMANTIC)
