import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import requests
import tenacity
from PIL import Image, ImageOps

from autoHTMLillustrator.config import config, get_int
from autoHTMLillustrator.image_providers import ArtifactStore, provider_timeout

MAX_WIDTH = 1200
QUALITY = 85
FORMAT = "webp"


@dataclass
class OptimizationResult:
    path: str
    original_size: int
    optimized_size: int
    reduction_percent: float
    format: str


def _retryable(exc: BaseException) -> bool:
    if isinstance(exc, requests.HTTPError):
        status = exc.response.status_code if exc.response is not None else 0
        return status >= 500 or status == 429
    return isinstance(exc, (requests.ConnectionError, requests.Timeout))


@tenacity.retry(
    retry=tenacity.retry_if_exception(_retryable),
    wait=tenacity.wait_random_exponential(min=1, max=10),
    stop=tenacity.stop_after_attempt(3),
    reraise=True,
)
def download_image(url: str, filename: str, store: Optional[ArtifactStore] = None,
                   session: Optional[requests.Session] = None) -> str:
    """Download `url` into the artifact store and return the file path."""
    store = store or ArtifactStore()
    http = session or requests
    target = store.path_for(filename)
    response = http.get(url, timeout=provider_timeout(), allow_redirects=True)
    response.raise_for_status()
    target.write_bytes(response.content)
    logging.info("Downloaded: %s (%dKB)", filename, len(response.content) // 1024)
    return str(target)


def optimize_image(input_path: str, max_width: Optional[int] = None, quality: Optional[int] = None,
                   fmt: Optional[str] = None) -> OptimizationResult:
    """Resize to at most `max_width` (never enlarging) and re-encode.

    On any failure the original file is reported back unchanged.
    """
    max_width = max_width or get_int("OUTPUT", "max_width", MAX_WIDTH)
    quality = quality or get_int("OUTPUT", "quality", QUALITY)
    fmt = (fmt or config.get("OUTPUT", "format", fallback=FORMAT)).lower()
    ext = ".webp" if fmt == "webp" else ".jpg"
    source = Path(input_path)
    output_path = source.with_name(f"{source.stem}-optimized{ext}")

    try:
        input_size = source.stat().st_size
        with Image.open(source) as img:
            img = ImageOps.exif_transpose(img)
            if img.width > max_width:
                height = round(img.height * max_width / img.width)
                img = img.resize((max_width, height), Image.Resampling.LANCZOS)
            if fmt == "webp":
                img.save(output_path, "WEBP", quality=quality)
            else:
                img.convert("RGB").save(output_path, "JPEG", quality=quality, optimize=True)
        output_size = output_path.stat().st_size
        reduction = round((1 - output_size / input_size) * 100, 1) if input_size else 0.0
        logging.info(
            "Optimized: %s (%dKB -> %dKB, %.1f%% smaller)",
            output_path.name, input_size // 1024, output_size // 1024, reduction,
        )
        return OptimizationResult(str(output_path), input_size, output_size, reduction, fmt)
    except (OSError, ValueError) as e:
        logging.warning("Optimization failed: %s - %s", source.name, e)
        size = source.stat().st_size if source.exists() else 0
        return OptimizationResult(str(source), size, size, 0.0, source.suffix.lstrip("."))


def optimize_batch(input_paths: List[str], **options) -> List[OptimizationResult]:
    logging.info("Optimizing %d image(s)...", len(input_paths))
    results = [optimize_image(path, **options) for path in input_paths]
    total_original = sum(r.original_size for r in results)
    total_optimized = sum(r.optimized_size for r in results)
    if total_original:
        logging.info(
            "Total: %dKB -> %dKB (%.1f%% smaller)",
            total_original // 1024, total_optimized // 1024, (1 - total_optimized / total_original) * 100,
        )
    return results


def download_and_optimize(url: str, filename: str, store: Optional[ArtifactStore] = None) -> str:
    """Locator of the optimized copy of `url` in the artifact store."""
    store = store or ArtifactStore()
    if os.path.isfile(url):
        path = url
    else:
        path = download_image(url, filename, store=store)
    return store.locator_for(optimize_image(path).path)
