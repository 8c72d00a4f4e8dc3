import base64
import dataclasses
import logging
from pathlib import Path
from types import SimpleNamespace

import openai
import pytest
import requests

from autoHTMLillustrator.errors import ConfigurationGap, ProviderError
from autoHTMLillustrator.image_providers import (
    ArtifactStore,
    GoogleImagenProvider,
    OpenAIImagesProvider,
    PexelsProvider,
    PixabayProvider,
    UnsplashProvider,
    placeholder_images,
    resolve_key,
)


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if self.text is not None:
            raise ValueError("Expecting value")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


UNSPLASH_PAYLOAD = {
    "results": [
        {
            "urls": {"regular": "https://u/1.jpg", "small": "https://u/1s.jpg", "thumb": "https://u/1t.jpg"},
            "alt_description": "a desk",
            "user": {"name": "Ann", "links": {"html": "https://unsplash.com/@ann"}},
            "width": 4000,
            "height": 3000,
        },
        {
            "urls": {"regular": "https://u/2.jpg"},
            "description": None,
            "user": {"name": "Bob", "links": {"html": "https://unsplash.com/@bob"}},
        },
    ]
}


def test_unsplash_normalizes_results():
    session = FakeSession(FakeResponse(UNSPLASH_PAYLOAD))
    provider = UnsplashProvider(api_key="key", session=session, timeout=3)

    images = provider.search("desk setup", 2)

    assert [img.locator for img in images] == ["https://u/1.jpg", "https://u/2.jpg"]
    assert images[0].alt_text == "a desk"
    assert images[1].alt_text == "desk setup"
    assert images[0].credit.link.startswith("https://unsplash.com/@ann?utm_source=")
    method, url, kwargs = session.requests[0]
    assert method == "GET" and url == UnsplashProvider.url
    assert kwargs["headers"]["Authorization"] == "Client-ID key"
    assert kwargs["timeout"] == 3


def test_unsplash_error_payload_raises():
    provider = UnsplashProvider(api_key="key", session=FakeSession(FakeResponse({"errors": ["OAuth error"]})))
    with pytest.raises(ProviderError):
        provider.search("x", 1)


def test_pexels_normalizes_results():
    payload = {"photos": [{
        "src": {"large2x": "https://p/1-2x.jpg", "large": "https://p/1.jpg", "medium": "m", "tiny": "t"},
        "alt": "",
        "photographer": "Cleo",
        "photographer_url": "https://pexels.com/@cleo",
        "width": 10,
        "height": 5,
    }]}
    images = PexelsProvider(api_key="key", session=FakeSession(FakeResponse(payload))).search("sofa", 3)

    assert len(images) == 1
    assert images[0].locator == "https://p/1-2x.jpg"
    assert images[0].alt_text == "sofa"
    assert images[0].provider_name == "Pexels"


def test_pixabay_normalizes_and_truncates():
    hits = [{"largeImageURL": f"https://x/{i}.jpg", "tags": "tree, forest", "user": "u", "pageURL": "p"}
            for i in range(5)]
    session = FakeSession(FakeResponse({"hits": hits}))
    images = PixabayProvider(api_key="key", session=session).search("tree", 2)

    assert [img.locator for img in images] == ["https://x/0.jpg", "https://x/1.jpg"]
    assert session.requests[0][2]["params"]["per_page"] == 3


def test_search_without_key_skips_network(caplog):
    caplog.set_level(logging.INFO)
    session = FakeSession(error=AssertionError("network used"))
    assert UnsplashProvider(session=session).search("x", 1) == []
    assert session.requests == []
    assert any("Unsplash: no API key, search skipped" in rec.message for rec in caplog.records)


def test_missing_key_is_a_configuration_gap():
    with pytest.raises(ConfigurationGap):
        PexelsProvider()._require_key()


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(error=requests.ConnectionError("down")),
        FakeSession(FakeResponse(status_code=503)),
        FakeSession(FakeResponse(text="<html>")),
        FakeSession(FakeResponse({"hits": [{"no_url": True}]})),
    ],
)
def test_transport_and_shape_failures_become_provider_errors(session):
    with pytest.raises(ProviderError):
        PixabayProvider(api_key="key", session=session).search("x", 1)


def test_dummy_keys_count_as_missing(monkeypatch):
    monkeypatch.setenv("UNSPLASH_ACCESS_KEY", "your_unsplash_access_key")
    assert resolve_key(("UNSPLASH_ACCESS_KEY",), "UNSPLASH-API") is None
    assert UnsplashProvider().configured is False


def test_key_from_config_file():
    from autoHTMLillustrator.config import config

    config.read_dict({"PEXELS-API": {"API-Key": "from-config"}})
    assert PexelsProvider().api_key == "from-config"


def test_imagen_saves_predictions(tmp_path):
    png = b"\x89PNG fake"
    payload = {"predictions": [{"bytesBase64Encoded": base64.b64encode(png).decode()}, {"other": 1}]}
    session = FakeSession(FakeResponse(payload))
    store = ArtifactStore(str(tmp_path), "/images")
    provider = GoogleImagenProvider(api_key="g-key", session=session, store=store, model="imagen-test")

    images = provider.generate("a red bicycle", 2)

    assert len(images) == 1
    assert images[0].locator.startswith("/images/gen-")
    assert Path(images[0].local_path).read_bytes() == png
    method, url, kwargs = session.requests[0]
    assert url.endswith("/models/imagen-test:predict")
    assert kwargs["headers"]["x-goog-api-key"] == "g-key"
    assert kwargs["json"]["parameters"]["sampleCount"] == 2


def test_imagen_without_key_returns_nothing():
    assert GoogleImagenProvider(session=FakeSession(error=AssertionError("no"))).generate("x", 1) == []


class FakeImages:
    def __init__(self, data=None, error=None):
        self.data = data or []
        self.error = error
        self.calls = []

    def generate(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=self.data)


def test_openai_images_saves_base64(tmp_path):
    images_api = FakeImages([SimpleNamespace(b64_json=base64.b64encode(b"img").decode(), url=None)])
    client = SimpleNamespace(images=images_api)
    provider = OpenAIImagesProvider(api_key="sk-test", client=client, store=ArtifactStore(str(tmp_path), "/img"))

    images = provider.generate("sunset", 1)

    assert images[0].locator.startswith("/img/gen-")
    assert images_api.calls[0]["model"] == "gpt-image-1"


def test_openai_images_dalle_uses_single_image(tmp_path):
    images_api = FakeImages([SimpleNamespace(b64_json=None, url="https://oai/x.png")])
    provider = OpenAIImagesProvider(api_key="sk-test", client=SimpleNamespace(images=images_api),
                                    model="dall-e-3", store=ArtifactStore(str(tmp_path)))

    images = provider.generate("sunset", 3)

    assert [img.locator for img in images] == ["https://oai/x.png"]
    assert images_api.calls[0]["n"] == 1


def test_openai_images_error_becomes_provider_error():
    images_api = FakeImages(error=openai.OpenAIError("rate limited"))
    provider = OpenAIImagesProvider(api_key="sk-test", client=SimpleNamespace(images=images_api))
    with pytest.raises(ProviderError):
        provider.generate("sunset", 1)


def test_generated_credits_are_not_shared_between_assets(tmp_path):
    b64 = base64.b64encode(b"img").decode()
    images_api = FakeImages([SimpleNamespace(b64_json=b64, url=None), SimpleNamespace(b64_json=b64, url=None)])
    provider = OpenAIImagesProvider(api_key="sk-test", client=SimpleNamespace(images=images_api),
                                    store=ArtifactStore(str(tmp_path)))

    first, second = provider.generate("sunset", 2)

    assert first.credit == second.credit
    assert first.credit is not second.credit
    with pytest.raises(dataclasses.FrozenInstanceError):
        first.credit.name = "Someone else"
    assert provider.generate("sunset", 1)[0].credit.name == "OpenAI"


def test_placeholders_encode_query():
    images = placeholder_images("coffee shop interior design", 2)
    assert len(images) == 2
    assert images[0].locator == "https://placehold.co/1200x800/2a2a3a/6366f1?text=coffee%20shop%20interior"
    assert images[0].small_locator.startswith("https://placehold.co/400x300/")
    assert images[0].to_dict()["credit"] == {"name": "Placeholder", "link": "#"}
