import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Optional

_enabled: bool = True
_ttl_seconds: int = 24 * 60 * 60
_base_dir: Path = Path(os.path.expanduser("~/.autoHTMLillustrator/cache"))


def configure(
    *,
    enabled: Optional[bool] = None,
    ttl_seconds: Optional[int] = None,
    base_dir: Optional[str] = None,
) -> None:
    global _enabled, _ttl_seconds, _base_dir
    if enabled is not None:
        _enabled = bool(enabled)
    if ttl_seconds is not None:
        try:
            _ttl_seconds = int(ttl_seconds)
        except (TypeError, ValueError):
            logging.warning("Ignoring invalid cache TTL: %r", ttl_seconds)
    if base_dir is not None and str(base_dir).strip():
        _base_dir = Path(os.path.expanduser(str(base_dir)))


def is_enabled() -> bool:
    return _enabled


def make_key(obj: Any) -> str:
    """Stable sha256 over a JSON-serializable request description."""
    raw = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _path_for(bucket: str, key: str) -> Path:
    # shard by the first two characters to keep folders small
    folder = _base_dir / bucket / key[:2]
    folder.mkdir(parents=True, exist_ok=True)
    return folder / f"{key}.json"


def get(bucket: str, key: str) -> Optional[dict]:
    if not _enabled:
        return None
    try:
        p = _path_for(bucket, key)
        if not p.exists():
            return None
        with p.open("r", encoding="utf-8") as f:
            obj = json.load(f)
        exp = float(obj.get("expires_at", 0) or 0)
        if exp <= 0:
            exp = p.stat().st_mtime + _ttl_seconds
        if time.time() >= exp:
            p.unlink(missing_ok=True)
            return None
        data = obj.get("data")
        return data if isinstance(data, dict) else None
    except (OSError, ValueError) as e:
        logging.debug("Cache read error for %s/%s: %s", bucket, key[:8], e)
        return None


def set(bucket: str, key: str, data: dict) -> None:
    if not _enabled:
        return
    try:
        p = _path_for(bucket, key)
        tmp_fd, tmp_path = tempfile.mkstemp(prefix=p.name, dir=str(p.parent))
        try:
            now = time.time()
            payload = {"created_at": now, "expires_at": now + _ttl_seconds, "data": data}
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp_path, p)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
    except (OSError, TypeError, ValueError) as e:
        logging.debug("Cache write error for %s/%s: %s", bucket, key[:8], e)
