"""Adapters for external image sources.

Every adapter exposes the same two capabilities, `search(query, count)` and
`generate(prompt, count)`, and returns a list of `ImageAsset`. Provider
specific JSON never leaves this module. An adapter without credentials
returns an empty list without touching the network; transport and parse
failures raise `ProviderError` for the chain to log.
"""

import base64
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import openai
import requests

from autoHTMLillustrator.config import config, get_float
from autoHTMLillustrator.errors import ConfigurationGap, ProviderError
from autoHTMLillustrator.InsertionSpec import Credit, ImageAsset

DEFAULT_TIMEOUT = 15.0

_DUMMY_KEYS = {"", "your_unsplash_access_key", "your_pexels_api_key", "your_pixabay_api_key", "sk-xxxxx"}


def provider_timeout() -> float:
    return get_float("PROVIDERS", "timeout_sec", DEFAULT_TIMEOUT)


def resolve_key(env_names: Tuple[str, ...], section: str) -> Optional[str]:
    """Credential from the environment, else `[section] API-Key` in the config."""
    for env_name in env_names:
        value = (os.getenv(env_name) or "").strip()
        if value not in _DUMMY_KEYS:
            return value
    value = (config.get(section, "API-Key", fallback="") or "").strip()
    return value if value not in _DUMMY_KEYS else None


class ArtifactStore:
    """Local folder for generated/downloaded images, served under `url_prefix`."""

    def __init__(self, directory: Optional[str] = None, url_prefix: Optional[str] = None):
        self.directory = Path(directory or config.get("OUTPUT", "image_dir", fallback="output/images")).expanduser()
        self.url_prefix = (url_prefix or config.get("OUTPUT", "url_prefix", fallback="/images")).rstrip("/")

    def path_for(self, filename: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory / filename

    def locator_for(self, path) -> str:
        return f"{self.url_prefix}/{Path(path).name}"

    def save(self, data: bytes, filename: str) -> Tuple[str, str]:
        path = self.path_for(filename)
        path.write_bytes(data)
        logging.info("Image saved: %s (%dKB)", filename, len(data) // 1024)
        return str(path), self.locator_for(path)


class ImageProvider:
    name = "Base"
    env_names: Tuple[str, ...] = ()
    config_section = ""

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else resolve_key(self.env_names, self.config_section)
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else provider_timeout()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> str:
        if not self.configured:
            raise ConfigurationGap(f"{self.name}: no API key")
        return self.api_key

    def available(self, capability: str) -> bool:
        try:
            self._require_key()
        except ConfigurationGap as gap:
            logging.info("%s, %s skipped", gap, capability)
            return False
        return True

    def search(self, query: str, count: int) -> List[ImageAsset]:
        return []

    def generate(self, prompt: str, count: int) -> List[ImageAsset]:
        return []

    def _request_json(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise ProviderError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(self.name, f"invalid JSON: {e}") from e

    def __repr__(self):
        return f"<{self.__class__.__name__} configured={self.configured}>"


class SearchProvider(ImageProvider):
    """Stock-photo search service. Subclasses implement `_fetch` and `_to_asset`."""

    def search(self, query: str, count: int) -> List[ImageAsset]:
        if not self.available("search"):
            return []
        payload = self._fetch(query, count)
        try:
            return [self._to_asset(item, query) for item in self._items(payload)[:count]]
        except (KeyError, TypeError, AttributeError) as e:
            raise ProviderError(self.name, f"unexpected response shape: {e}") from e

    def _fetch(self, query: str, count: int) -> Dict[str, Any]:
        raise NotImplementedError

    def _items(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def _to_asset(self, item: Dict[str, Any], query: str) -> ImageAsset:
        raise NotImplementedError


class UnsplashProvider(SearchProvider):
    name = "Unsplash"
    env_names = ("UNSPLASH_ACCESS_KEY",)
    config_section = "UNSPLASH-API"
    url = "https://api.unsplash.com/search/photos"

    def _fetch(self, query, count):
        payload = self._request_json(
            "GET",
            self.url,
            params={"query": query, "per_page": max(count, 5), "orientation": "landscape"},
            headers={"Authorization": f"Client-ID {self.api_key}", "Accept-Version": "v1"},
        )
        if isinstance(payload, dict) and payload.get("errors"):
            raise ProviderError(self.name, f"API error: {payload['errors']}")
        return payload

    def _items(self, payload):
        return payload.get("results") or []

    def _to_asset(self, item, query):
        user = item["user"]
        return ImageAsset(
            locator=item["urls"]["regular"],
            small_locator=item["urls"].get("small"),
            thumb_locator=item["urls"].get("thumb"),
            alt_text=item.get("alt_description") or item.get("description") or query,
            credit=Credit(
                name=user.get("name", ""),
                link=f"{user['links']['html']}?utm_source=blog_image_tool&utm_medium=referral",
            ),
            provider_name=self.name,
            width=item.get("width"),
            height=item.get("height"),
        )


class PexelsProvider(SearchProvider):
    name = "Pexels"
    env_names = ("PEXELS_API_KEY",)
    config_section = "PEXELS-API"
    url = "https://api.pexels.com/v1/search"

    def _fetch(self, query, count):
        return self._request_json(
            "GET",
            self.url,
            params={"query": query, "per_page": max(count, 3), "orientation": "landscape"},
            headers={"Authorization": self.api_key},
        )

    def _items(self, payload):
        return payload.get("photos") or []

    def _to_asset(self, item, query):
        src = item["src"]
        return ImageAsset(
            locator=src.get("large2x") or src["large"],
            small_locator=src.get("medium"),
            thumb_locator=src.get("tiny"),
            alt_text=item.get("alt") or query,
            credit=Credit(name=item.get("photographer", ""), link=item.get("photographer_url", "")),
            provider_name=self.name,
            width=item.get("width"),
            height=item.get("height"),
        )


class PixabayProvider(SearchProvider):
    name = "Pixabay"
    env_names = ("PIXABAY_API_KEY",)
    config_section = "PIXABAY-API"
    url = "https://pixabay.com/api/"

    def _fetch(self, query, count):
        # Pixabay rejects per_page values below 3
        return self._request_json(
            "GET",
            self.url,
            params={
                "key": self.api_key,
                "q": query,
                "image_type": "photo",
                "orientation": "horizontal",
                "per_page": max(count, 3),
            },
        )

    def _items(self, payload):
        return payload.get("hits") or []

    def _to_asset(self, item, query):
        return ImageAsset(
            locator=item["largeImageURL"],
            small_locator=item.get("webformatURL"),
            thumb_locator=item.get("previewURL"),
            alt_text=item.get("tags") or query,
            credit=Credit(name=item.get("user", ""), link=item.get("pageURL", "")),
            provider_name=self.name,
            width=item.get("imageWidth"),
            height=item.get("imageHeight"),
        )


def _generated_filename(index: int, ext: str = "png") -> str:
    return f"gen-{time.time_ns()}-{index}.{ext}"


class GoogleImagenProvider(ImageProvider):
    """Imagen through the Generative Language REST `:predict` endpoint."""

    name = "GoogleImagen"
    env_names = ("GOOGLE_AI_API_KEY", "GEMINI_API_KEY")
    config_section = "GEMINI-API"
    endpoint = "https://generativelanguage.googleapis.com/v1beta/models/{model}:predict"
    credit_name = "Google Imagen"
    credit_link = "https://deepmind.google/technologies/imagen/"

    def __init__(self, *args, model: Optional[str] = None, store: Optional[ArtifactStore] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.model = model or config.get("PROVIDERS", "imagen_model", fallback="imagen-4.0-fast-generate-001")
        self.store = store or ArtifactStore()

    def generate(self, prompt: str, count: int) -> List[ImageAsset]:
        if not self.available("generation"):
            return []
        logging.info("Generating %d image(s) with %s: \"%s\"", count, self.model, prompt)
        data = self._request_json(
            "POST",
            self.endpoint.format(model=self.model),
            headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
            json={
                "instances": [{"prompt": prompt}],
                # Imagen returns at most four samples per request
                "parameters": {"sampleCount": max(1, min(count, 4)), "aspectRatio": "16:9"},
            },
        )
        predictions = (data or {}).get("predictions") or []
        if not predictions:
            logging.warning("%s returned no predictions", self.name)
            return []

        assets = []
        for i, pred in enumerate(predictions[:count]):
            b64 = pred.get("bytesBase64Encoded") if isinstance(pred, dict) else None
            if not b64:
                continue
            path, locator = self.store.save(base64.b64decode(b64), _generated_filename(i))
            assets.append(ImageAsset(
                locator=locator,
                alt_text=prompt,
                credit=Credit(name=self.credit_name, link=self.credit_link),
                provider_name=self.name,
                local_path=path,
            ))
        return assets


class OpenAIImagesProvider(ImageProvider):
    """OpenAI Images API through the official SDK."""

    name = "OpenAIImages"
    env_names = ("OPENAI_API_KEY",)
    config_section = "OPENAI-API"
    credit_name = "OpenAI"
    credit_link = "https://openai.com/"

    def __init__(self, *args, model: Optional[str] = None, store: Optional[ArtifactStore] = None,
                 client: Optional[openai.OpenAI] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.model = model or config.get("PROVIDERS", "openai_image_model", fallback="gpt-image-1")
        self.store = store or ArtifactStore()
        self._client = client

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def generate(self, prompt: str, count: int) -> List[ImageAsset]:
        if not self.available("generation"):
            return []
        logging.info("Generating %d image(s) with %s: \"%s\"", count, self.model, prompt)
        kwargs: Dict[str, Any] = {"model": self.model, "prompt": prompt, "n": max(1, count), "size": "1536x1024"}
        if self.model.startswith("dall-e"):
            # dall-e-3 only supports n=1 and returns URLs unless asked for base64
            kwargs.update({"n": 1, "size": "1792x1024", "response_format": "b64_json"})
        try:
            response = self.client.images.generate(**kwargs)
        except openai.OpenAIError as e:
            raise ProviderError(self.name, str(e)) from e

        assets = []
        for i, item in enumerate((response.data or [])[:count]):
            if getattr(item, "b64_json", None):
                path, locator = self.store.save(base64.b64decode(item.b64_json), _generated_filename(i))
            elif getattr(item, "url", None):
                path, locator = None, item.url
            else:
                continue
            assets.append(ImageAsset(
                locator=locator,
                alt_text=prompt,
                credit=Credit(name=self.credit_name, link=self.credit_link),
                provider_name=self.name,
                local_path=path,
            ))
        return assets


PLACEHOLDER_BASE = "https://placehold.co"


def placeholder_images(query: str, count: int) -> List[ImageAsset]:
    """Deterministic stand-ins; the locator encodes the query text."""
    text = quote((query or "image")[:20])
    return [
        ImageAsset(
            locator=f"{PLACEHOLDER_BASE}/1200x800/2a2a3a/6366f1?text={text}",
            small_locator=f"{PLACEHOLDER_BASE}/400x300/2a2a3a/6366f1?text={text}",
            thumb_locator=f"{PLACEHOLDER_BASE}/200x150/2a2a3a/6366f1?text={text}",
            alt_text=query,
            credit=Credit(name="Placeholder", link="#"),
            provider_name="Placeholder",
            width=1200,
            height=800,
        )
        for _ in range(max(0, count))
    ]


SEARCH_PROVIDERS = {
    "unsplash": UnsplashProvider,
    "pexels": PexelsProvider,
    "pixabay": PixabayProvider,
}

GENERATION_PROVIDERS = {
    "google_imagen": GoogleImagenProvider,
    "openai_images": OpenAIImagesProvider,
}


def build_providers(names: List[str], registry: Dict[str, type]) -> List[ImageProvider]:
    providers = []
    for name in names:
        cls = registry.get(name)
        if cls is None:
            logging.warning("Unknown image provider '%s' in configuration; ignored", name)
            continue
        providers.append(cls())
    return providers
