import logging
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from autoHTMLillustrator.config import config, get_int
from autoHTMLillustrator.errors import EmptyDocumentError
from autoHTMLillustrator.image_providers import ArtifactStore
from autoHTMLillustrator.InsertionSpec import (
    SINGLE_LANDSCAPE,
    ImageAsset,
    InsertionSpec,
    RenderedSection,
    clean_keywords,
    normalize_layout,
    normalize_source,
)
from autoHTMLillustrator.job_manager import Job, JobManager
from autoHTMLillustrator.provider_chain import ProviderChain, build_default_chain
from autoHTMLillustrator.section_extractor import SectionExtractor
from autoHTMLillustrator import layout_renderer, optimizer, splicer


class autoHTMLillustrator:
    """Extract slots, acquire images per slot, render, splice once."""

    def __init__(
        self,
        chain: Optional[ProviderChain] = None,
        extractor: Optional[SectionExtractor] = None,
        max_workers: Optional[int] = None,
        tie_break: Optional[str] = None,
        store: Optional[ArtifactStore] = None,
    ):
        self.chain = chain or build_default_chain()
        self.extractor = extractor or SectionExtractor()
        self.max_workers = max_workers or get_int("JOBS", "max_workers", 1)
        self.tie_break = tie_break or config.get("SPLICE", "tie_break", fallback=splicer.TIE_REVERSE)
        self.store = store or ArtifactStore()

    def analyze(self, content: str, use_ai: bool = False) -> Dict[str, Any]:
        logging.info("Analyzing document (%d characters)...", len(content or ""))
        return self.extractor.extract(content, use_ai=use_ai).to_dict()

    def acquire_images(self, spec: InsertionSpec, fallback_to_gen: bool = False,
                       optimize: bool = False) -> List[ImageAsset]:
        images = self.chain.acquire(
            spec.keywords,
            spec.required_count,
            allow_generation_fallback=fallback_to_gen,
            explicit_source=spec.explicit_source,
        )
        alt = spec.alt_text or spec.caption
        if alt:
            images = [replace(img, alt_text=alt) for img in images]
        if optimize:
            images = [self._optimized(img, i) for i, img in enumerate(images)]
        return images

    def _optimized(self, image: ImageAsset, index: int) -> ImageAsset:
        if image.provider_name == "Placeholder":
            return image
        try:
            locator = optimizer.download_and_optimize(
                image.local_path or image.locator,
                f"{time.time_ns()}-{index}.jpg",
                store=self.store,
            )
        except Exception as e:
            logging.warning("Image processing failed, keeping original URL: %s", e)
            return image
        return replace(image, locator=locator)

    def render_section(self, spec: InsertionSpec, images: Sequence[ImageAsset]) -> RenderedSection:
        fragment = layout_renderer.render(spec.layout, images, spec.caption)
        return RenderedSection(spec=spec, images=tuple(images), fragment=fragment)

    def _acquire_all(self, specs: List[InsertionSpec], fallback_to_gen: bool, optimize: bool):
        if self.max_workers <= 1 or len(specs) <= 1:
            return [self.acquire_images(spec, fallback_to_gen, optimize) for spec in specs]

        jm = JobManager(max_workers=self.max_workers,
                        status_interval_sec=float(config.get("JOBS", "status_interval_sec", fallback="2.0")))
        jobs = []
        for i, spec in enumerate(specs):
            def _run(spec=spec):
                return self.acquire_images(spec, fallback_to_gen, optimize)
            job = Job(id=f"section:{i}", run=_run)
            jm.add_job(job)
            jobs.append(job)
        jm.run()
        # results are matched to their spec by position, not completion order
        return [job.result if job.status == "done" else None for job in jobs]

    def process(self, content: str, use_ai: bool = False, optimize: bool = False,
                fallback_to_gen: bool = False) -> Dict[str, Any]:
        if not content or not content.strip():
            raise EmptyDocumentError("Document is empty")

        logging.info("Step 1: analyzing document")
        extraction = self.extractor.extract(content, use_ai=use_ai)
        if not extraction.specs:
            return {
                "message": "No section needing images was found.",
                "html": content,
                "sections": [],
                "stats": {"totalSections": 0, "totalImages": 0, "inserted": 0, "skipped": 0,
                          "strategy": extraction.strategy},
            }

        logging.info("Step 2: acquiring images for %d section(s)", len(extraction.specs))
        acquired = self._acquire_all(extraction.specs, fallback_to_gen, optimize)

        rendered = []
        for spec, images in zip(extraction.specs, acquired):
            if images is None:
                logging.warning("Dropping section after failed acquisition: %s", spec.anchor[:50])
                continue
            rendered.append(self.render_section(spec, images))

        logging.info("Step 3: building document")
        report = splicer.splice_with_report(
            content, [(r.spec, r.fragment) for r in rendered], tie_break=self.tie_break
        )
        logging.info("Done: %d inserted, %d skipped", len(report.inserted), report.skipped)
        return {
            "title": extraction.title,
            "html": report.document,
            "sections": [r.to_dict(i + 1) for i, r in enumerate(rendered)],
            "stats": {
                "totalSections": len(rendered),
                "totalImages": sum(len(r.images) for r in rendered),
                "inserted": len(report.inserted),
                "skipped": report.skipped,
                "strategy": extraction.strategy,
            },
        }

    def generate_section(self, keywords=None, layout: Optional[str] = None, caption: str = "",
                         source: Optional[str] = None, fallback_to_gen: bool = False) -> Dict[str, Any]:
        """Single fragment without a document (quick mode)."""
        keywords = clean_keywords(keywords) or ["blog"]
        caption = caption or ""
        spec = InsertionSpec(
            anchor="(quick)",
            keywords=keywords,
            layout=normalize_layout(layout, default=SINGLE_LANDSCAPE),
            caption=caption,
            alt_text=caption or " ".join(keywords),
            explicit_source=normalize_source(source),
        )
        section = self.render_section(spec, self.acquire_images(spec, fallback_to_gen=fallback_to_gen))
        return {"html": section.fragment, "images": [img.to_dict() for img in section.images]}

    def search_images(self, keywords, count: int = 1, fallback_to_gen: bool = False) -> List[Dict[str, Any]]:
        keywords = clean_keywords(keywords)
        if not keywords:
            raise ValueError("No search keywords given")
        images = self.chain.acquire(keywords, max(1, int(count or 1)), allow_generation_fallback=fallback_to_gen)
        return [img.to_dict() for img in images]
