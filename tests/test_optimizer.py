import pytest
import requests
import tenacity
from PIL import Image

from autoHTMLillustrator import optimizer
from autoHTMLillustrator.image_providers import ArtifactStore


def _make_image(path, size=(2400, 1200), color=(200, 30, 30)):
    Image.new("RGB", size, color).save(path, "PNG")
    return path


def test_optimize_resizes_and_converts(tmp_path):
    source = _make_image(tmp_path / "big.png")

    result = optimizer.optimize_image(str(source))

    assert result.path.endswith("big-optimized.webp")
    assert result.format == "webp"
    with Image.open(result.path) as img:
        assert img.size == (1200, 600)


def test_optimize_never_enlarges(tmp_path):
    source = _make_image(tmp_path / "small.png", size=(300, 200))
    result = optimizer.optimize_image(str(source), fmt="jpeg")
    assert result.path.endswith("small-optimized.jpg")
    with Image.open(result.path) as img:
        assert img.size == (300, 200)


def test_optimize_uses_configured_width(tmp_path):
    from autoHTMLillustrator.config import config

    config.read_dict({"OUTPUT": {"max_width": "600", "format": "jpeg"}})
    result = optimizer.optimize_image(str(_make_image(tmp_path / "a.png")))
    with Image.open(result.path) as img:
        assert img.width == 600


def test_unreadable_image_is_returned_unchanged(tmp_path):
    bogus = tmp_path / "bogus.png"
    bogus.write_bytes(b"definitely not an image")

    result = optimizer.optimize_image(str(bogus))

    assert result.path == str(bogus)
    assert result.reduction_percent == 0.0


def test_optimize_batch(tmp_path):
    paths = [str(_make_image(tmp_path / f"{i}.png")) for i in range(2)]
    results = optimizer.optimize_batch(paths, max_width=100)
    assert len(results) == 2


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}", response=self)


class ScriptedSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0

    def get(self, url, **kwargs):
        self.calls += 1
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(optimizer.download_image.retry, "wait", tenacity.wait_none())


def test_download_retries_transient_errors(tmp_path, no_retry_wait):
    session = ScriptedSession([requests.ConnectionError("reset"), FakeResponse(status_code=503), FakeResponse(b"data")])
    store = ArtifactStore(str(tmp_path), "/images")

    path = optimizer.download_image("https://img/x.jpg", "x.jpg", store=store, session=session)

    assert session.calls == 3
    assert (tmp_path / "x.jpg").read_bytes() == b"data"
    assert path == str(tmp_path / "x.jpg")


def test_download_does_not_retry_client_errors(tmp_path, no_retry_wait):
    session = ScriptedSession([FakeResponse(status_code=404)])
    with pytest.raises(requests.HTTPError):
        optimizer.download_image("https://img/x.jpg", "x.jpg", store=ArtifactStore(str(tmp_path)), session=session)
    assert session.calls == 1


def test_download_and_optimize_local_file(tmp_path):
    store = ArtifactStore(str(tmp_path), "/images")
    source = _make_image(tmp_path / "gen-1.png")

    locator = optimizer.download_and_optimize(str(source), "ignored.jpg", store=store)

    assert locator == "/images/gen-1-optimized.webp"
