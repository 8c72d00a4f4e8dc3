"""
HTTP API for the illustrator pipeline.

Endpoints:
- `POST /api/analyze`: find image slots in a document.
- `POST /api/process`: full run (analyze, acquire, render, splice).
- `POST /api/generate-section`: one fragment from keywords (quick mode).
- `POST /api/search-images`: raw provider chain lookup.
- `GET /api/health`: which providers are configured.
- `/images/*`: static files from the local artifact store.

Every error body has the shape `{"error": message}`.
"""

import logging
import os
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from autoHTMLillustrator.errors import EmptyDocumentError, ExtractionError, SpliceConflictError


class AnalyzeRequest(BaseModel):
    content: str = ""
    useAI: bool = False


class ProcessRequest(BaseModel):
    content: str = ""
    useAI: bool = False
    optimize: bool = False
    fallbackToGen: bool = False


class GenerateSectionRequest(BaseModel):
    keywords: Optional[List[str]] = None
    layout: Optional[str] = None
    caption: str = ""
    source: Optional[str] = None
    fallbackToGen: bool = False


class SearchImagesRequest(BaseModel):
    keywords: List[str] = []
    count: int = 1
    fallbackToGen: bool = False


class ImageFiles(StaticFiles):
    """Static files from the artifact store, created on the first request."""

    async def check_config(self) -> None:
        if self.directory is not None:
            os.makedirs(self.directory, exist_ok=True)
        await super().check_config()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(pipeline=None) -> FastAPI:
    """Build the app around `pipeline` (an `autoHTMLillustrator` instance).

    The default pipeline is created lazily on first request, so importing
    this module does not touch provider configuration.
    """
    app = FastAPI(title="autoHTMLillustrator")
    state = {"pipeline": pipeline}

    def get_pipeline():
        if state["pipeline"] is None:
            from autoHTMLillustrator.autoHTMLillustrator import autoHTMLillustrator
            state["pipeline"] = autoHTMLillustrator()
        return state["pipeline"]

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError):
        return _error(400, f"Invalid request: {exc.errors()}")

    @app.exception_handler(EmptyDocumentError)
    async def _empty_document(_request: Request, exc: EmptyDocumentError):
        return _error(400, "Please provide the document content.")

    @app.exception_handler(ExtractionError)
    async def _extraction_error(_request: Request, exc: ExtractionError):
        logging.error("Analysis failed: %s", exc)
        return _error(502, f"AI analysis failed: {exc}")

    @app.exception_handler(SpliceConflictError)
    async def _splice_conflict(_request: Request, exc: SpliceConflictError):
        return _error(409, str(exc))

    @app.exception_handler(Exception)
    async def _unexpected(_request: Request, exc: Exception):
        logging.exception("Request failed")
        return _error(500, str(exc))

    @app.post("/api/analyze")
    def analyze(body: AnalyzeRequest):
        if not body.content.strip():
            raise EmptyDocumentError("Document is empty")
        analysis = get_pipeline().analyze(body.content, use_ai=body.useAI)
        return {"success": True, "analysis": analysis, "mode": "ai" if body.useAI else "simple"}

    @app.post("/api/process")
    def process(body: ProcessRequest):
        if not body.content.strip():
            raise EmptyDocumentError("Document is empty")
        result = get_pipeline().process(
            body.content,
            use_ai=body.useAI,
            optimize=body.optimize,
            fallback_to_gen=body.fallbackToGen,
        )
        return {"success": True, **result}

    @app.post("/api/generate-section")
    def generate_section(body: GenerateSectionRequest):
        result = get_pipeline().generate_section(
            keywords=body.keywords,
            layout=body.layout,
            caption=body.caption,
            source=body.source,
            fallback_to_gen=body.fallbackToGen,
        )
        return {"success": True, **result}

    @app.post("/api/search-images")
    def search_images(body: SearchImagesRequest):
        if not [k for k in body.keywords if k.strip()]:
            return _error(400, "Please provide search keywords.")
        images = get_pipeline().search_images(body.keywords, body.count, fallback_to_gen=body.fallbackToGen)
        return {"success": True, "images": images}

    @app.get("/api/health")
    def health():
        pl = get_pipeline()
        return {
            "success": True,
            "semantic": pl.extractor.semantic_available(),
            "search": {getattr(p, "name", "?"): bool(getattr(p, "configured", True)) for p in pl.chain.search_providers},
            "generation": {
                getattr(p, "name", "?"): bool(getattr(p, "configured", True)) for p in pl.chain.generation_providers
            },
        }

    if pipeline is not None:
        image_dir = pipeline.store.directory
    else:
        from autoHTMLillustrator.image_providers import ArtifactStore
        image_dir = ArtifactStore().directory
    app.mount("/images", ImageFiles(directory=str(image_dir), check_dir=False), name="images")

    return app


app = create_app()
