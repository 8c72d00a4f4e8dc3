import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

SINGLE_LANDSCAPE = "single-landscape"
SINGLE_PORTRAIT = "single-portrait"
GRID_2 = "grid-2"
GRID_3 = "grid-3"
GRID_4 = "grid-4"
COMPARE = "compare"

LAYOUTS = (SINGLE_LANDSCAPE, SINGLE_PORTRAIT, GRID_2, GRID_3, GRID_4, COMPARE)

_IMAGE_COUNTS = {
    SINGLE_LANDSCAPE: 1,
    SINGLE_PORTRAIT: 1,
    GRID_2: 2,
    GRID_3: 3,
    GRID_4: 4,
    COMPARE: 2,
}

SOURCE_SEARCH = "search"
SOURCE_GENERATE = "generate"
SOURCES = (SOURCE_SEARCH, SOURCE_GENERATE)


def normalize_layout(value: Optional[str], default: Optional[str] = GRID_2) -> Optional[str]:
    """Map a layout name to one of LAYOUTS.

    Accepts the bare names and the `image-` prefixed class names that
    markers and language models tend to produce ("image-grid-3").
    Returns `default` for anything unrecognized.
    """
    if not value:
        return default
    name = str(value).strip().lower()
    if name.startswith("image-"):
        name = name[len("image-"):]
    return name if name in _IMAGE_COUNTS else default


def normalize_source(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    name = str(value).strip().lower()
    return name if name in SOURCES else None


def image_count_for_layout(layout: Optional[str]) -> int:
    return _IMAGE_COUNTS.get(normalize_layout(layout, default=None), 1)


def clean_keywords(values) -> List[str]:
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, (list, tuple)):
        return []
    return [str(v).strip() for v in values if str(v or "").strip()]


@dataclass
class InsertionSpec:
    anchor: str
    keywords: List[str]
    layout: str = GRID_2
    caption: str = ""
    alt_text: str = ""
    reason: str = ""
    explicit_source: Optional[str] = None

    def is_valid(self) -> bool:
        return bool(self.anchor) and len(self.keywords) > 0

    @property
    def required_count(self) -> int:
        return image_count_for_layout(self.layout)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "insertAfter": self.anchor,
            "searchKeywords": list(self.keywords),
            "layout": self.layout,
            "caption": self.caption,
            "altText": self.alt_text,
            "reason": self.reason,
            "source": self.explicit_source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_layout: str = GRID_2) -> Optional["InsertionSpec"]:
        """Build a spec from the semantic-provider section shape.

        Returns None when the entry breaks the invariants (no anchor,
        no keywords); such entries are dropped by the caller.
        """
        if not isinstance(data, dict):
            return None
        anchor = data.get("insertAfter") or data.get("anchor") or ""
        if not isinstance(anchor, str):
            return None
        keywords = clean_keywords(data.get("searchKeywords", data.get("keywords")))
        caption = str(data.get("caption") or "")
        spec = cls(
            anchor=anchor,
            keywords=keywords,
            layout=normalize_layout(data.get("layout"), default=default_layout),
            caption=caption,
            alt_text=str(data.get("altText") or caption),
            reason=str(data.get("reason") or ""),
            explicit_source=normalize_source(data.get("source")),
        )
        return spec if spec.is_valid() else None


@dataclass(frozen=True)
class Credit:
    name: str
    link: str


@dataclass
class ImageAsset:
    locator: str
    alt_text: str = ""
    provider_name: str = ""
    small_locator: Optional[str] = None
    thumb_locator: Optional[str] = None
    credit: Optional[Credit] = None
    width: Optional[int] = None
    height: Optional[int] = None
    # Set when the image already lives in the local artifact store
    local_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.locator,
            "smallUrl": self.small_locator,
            "thumbUrl": self.thumb_locator,
            "alt": self.alt_text,
            "credit": asdict(self.credit) if self.credit else None,
            "provider": self.provider_name,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class RenderedSection:
    spec: InsertionSpec
    images: tuple = field(default_factory=tuple)
    fragment: str = ""

    def to_dict(self, index: int) -> Dict[str, Any]:
        return {
            "index": index,
            "insertAfter": self.spec.anchor,
            "layout": self.spec.layout,
            "html": self.fragment.strip(),
            "reason": self.spec.reason,
            "images": [img.to_dict() for img in self.images],
        }


_WS = re.compile(r"\s+")


def short_text(text: str, limit: int = 50) -> str:
    """Single-line preview used in log messages."""
    text = _WS.sub(" ", text or "").strip()
    return text if len(text) <= limit else text[:limit] + "..."
