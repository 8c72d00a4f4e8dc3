import tempfile

import pytest

from autoHTMLillustrator.config import config as _config
from autoHTMLillustrator import cache, mock_provider
from autoHTMLillustrator.InsertionSpec import Credit, ImageAsset

# Generated/downloaded images never land in the working tree
IMAGE_DIR = tempfile.mkdtemp(prefix="illustrator-images-")

PROVIDER_ENV_VARS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_AI_API_KEY",
    "UNSPLASH_ACCESS_KEY",
    "PEXELS_API_KEY",
    "PIXABAY_API_KEY",
)


def _base_config():
    return {
        "AI": {"analysis_model": "openai/gpt-4o-mini"},
        "OUTPUT": {"image_dir": IMAGE_DIR, "url_prefix": "/images"},
        "JOBS": {"max_workers": "1", "status_interval_sec": "0.05"},
    }


# Configure early (module import time) so the module-level HTTP app uses the temp dir
_config.clear()
_config.read_dict(_base_config())


@pytest.fixture(autouse=True)
def configure_config(monkeypatch):
    """Fresh config, no credentials from the developer's shell, no disk cache."""
    _config.clear()
    _config.read_dict(_base_config())
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    cache.configure(enabled=False)
    mock_provider.reset()
    yield
    _config.clear()
    mock_provider.reset()


def make_asset(n, provider="Fake"):
    return ImageAsset(
        locator=f"https://img.example/{n}.jpg",
        alt_text=f"image {n}",
        provider_name=provider,
        credit=Credit(name="Someone", link="https://example.org/someone"),
        width=1200,
        height=800,
    )


class FakeProvider:
    """Scripted search/generation provider; records every call."""

    def __init__(self, name="Fake", results=None, error=None, configured=True):
        self.name = name
        self.results = results if results is not None else []
        self.error = error
        self.configured = configured
        self.calls = []

    def _answer(self, capability, query, count):
        self.calls.append((capability, query, count))
        if self.error is not None:
            raise self.error
        return list(self.results)

    def search(self, query, count):
        return self._answer("search", query, count)

    def generate(self, prompt, count):
        return self._answer("generate", prompt, count)


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def asset():
    return make_asset
