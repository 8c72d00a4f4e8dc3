"""HTML fragments for the image layouts.

Pure functions: no I/O and no exceptions for odd input. Missing images
shrink the layout instead of failing (a grid renders what it has, a compare
with one image becomes a single landscape image). The markup uses the
`blog-image-container` / `image-<layout>` classes of the blog stylesheet.
"""

import re
from html import escape
from typing import List, Sequence

from autoHTMLillustrator.InsertionSpec import (
    COMPARE,
    GRID_2,
    GRID_3,
    GRID_4,
    SINGLE_LANDSCAPE,
    SINGLE_PORTRAIT,
    ImageAsset,
    normalize_layout,
)

CONTAINER_CLASS = "blog-image-container"

_GRID_SIZES = {GRID_2: 2, GRID_3: 3, GRID_4: 4}
_VS_SPLIT = re.compile(r"\s*\bvs\b\.?\s*", re.IGNORECASE)


def _img(image: ImageAsset, alt_fallback: str, indent: str = "  ") -> str:
    alt = image.alt_text or alt_fallback or ""
    return f'{indent}<img src="{escape(image.locator or "")}" alt="{escape(alt)}" loading="lazy">'


def _caption(caption: str) -> List[str]:
    return [f'  <p class="image-caption">{escape(caption, quote=False)}</p>'] if caption else []


def _container(layout_class: str, body: List[str]) -> str:
    return "\n".join([f'<div class="{CONTAINER_CLASS} image-{layout_class}">', *body, "</div>"])


def render_single(layout: str, image: ImageAsset, caption: str) -> str:
    return _container(layout, [_img(image, caption), *_caption(caption)])


def render_grid(size: int, images: Sequence[ImageAsset], caption: str) -> str:
    selected = list(images)[:size]
    if not selected:
        return ""
    # caption lives inside the container so it can span the whole grid row
    return _container(f"grid-{size}", [*(_img(img, caption) for img in selected), *_caption(caption)])


def compare_labels(caption: str) -> List[str]:
    """Split "Old vs New" into two labels; Before/After otherwise."""
    parts = [p.strip() for p in _VS_SPLIT.split(caption or "", maxsplit=1)] if caption else []
    if len(parts) < 2:
        return ["Before", "After"]
    return [parts[0] or "Before", parts[1] or "After"]


def render_compare(images: Sequence[ImageAsset], caption: str) -> str:
    if len(images) < 2:
        return render(SINGLE_LANDSCAPE, images, caption)
    labels = compare_labels(caption)
    body = []
    for image, label in zip(images[:2], labels):
        body += [
            '  <div class="image-compare-item">',
            f'    <p class="image-compare-label">{escape(label, quote=False)}</p>',
            _img(image, label, indent="    "),
            "  </div>",
        ]
    return _container(COMPARE, body + _caption(caption))


def render(layout: str, images: Sequence[ImageAsset], caption: str = "") -> str:
    """Markup fragment for `layout`; empty string when there is no image."""
    images = [img for img in (images or []) if img is not None]
    if not images:
        return ""
    caption = caption or ""
    name = normalize_layout(layout, default=SINGLE_LANDSCAPE)
    if name in _GRID_SIZES:
        return render_grid(_GRID_SIZES[name], images, caption)
    if name == COMPARE:
        return render_compare(images, caption)
    if name == SINGLE_PORTRAIT:
        return render_single(SINGLE_PORTRAIT, images[0], caption)
    return render_single(SINGLE_LANDSCAPE, images[0], caption)
