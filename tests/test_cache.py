import json

from autoHTMLillustrator import cache


def test_set_then_get(tmp_path):
    cache.configure(enabled=True, ttl_seconds=60, base_dir=str(tmp_path))
    key = cache.make_key({"model": "m", "prompt": "p"})

    cache.set("chat", key, {"text": "hello"})

    assert cache.get("chat", key) == {"text": "hello"}
    assert (tmp_path / "chat" / key[:2] / f"{key}.json").exists()


def test_disabled_cache_stores_nothing(tmp_path):
    cache.configure(enabled=False, base_dir=str(tmp_path))
    cache.set("chat", "abc", {"text": "x"})
    assert cache.get("chat", "abc") is None
    assert not (tmp_path / "chat").exists()


def test_expired_entry_is_dropped(tmp_path):
    cache.configure(enabled=True, ttl_seconds=60, base_dir=str(tmp_path))
    key = cache.make_key("k")
    cache.set("chat", key, {"text": "old"})
    path = tmp_path / "chat" / key[:2] / f"{key}.json"
    payload = json.loads(path.read_text(encoding="utf-8"))
    payload["expires_at"] = 1
    path.write_text(json.dumps(payload), encoding="utf-8")

    assert cache.get("chat", key) is None
    assert not path.exists()


def test_corrupt_entry_reads_as_miss(tmp_path):
    cache.configure(enabled=True, ttl_seconds=60, base_dir=str(tmp_path))
    key = cache.make_key("broken")
    path = tmp_path / "chat" / key[:2] / f"{key}.json"
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")
    assert cache.get("chat", key) is None


def test_make_key_is_order_independent():
    assert cache.make_key({"a": 1, "b": 2}) == cache.make_key({"b": 2, "a": 1})
