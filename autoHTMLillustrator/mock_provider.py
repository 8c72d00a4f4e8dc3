import json
import logging
import time
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple
from autoHTMLillustrator.config import config

ResponseTuple = Tuple[Optional[str], Dict[str, Any]]

_call_counts: Dict[str, int] = defaultdict(int)


def reset() -> None:
    """Reset internal call counters (useful for tests and fresh CLI runs)."""
    _call_counts.clear()


def is_mock_model(model: str) -> bool:
    return bool(model) and model.startswith("TEST/")


def _mock_dir() -> Path:
    return Path(config.get("AI", "mock_dir", fallback="mock_responses")).expanduser()


def _candidate_paths(base: Path, task: str, index: int) -> Iterable[Path]:
    yield base / f"{task}.{index}.json"
    yield base / f"{task}.json"


def fetch(task: str) -> ResponseTuple:
    """
    Load a canned response for `task` ("sections", "translate", ...).
    The n-th call for a task prefers `<task>.<n>.json`, then `<task>.json`.
    Returns (None, {"cost": 0.0}) when nothing matches.
    """
    index = _call_counts[task]
    _call_counts[task] += 1
    base = _mock_dir()
    candidates = list(_candidate_paths(base, task, index))

    # Optional artificial latency for exercising the job pool (ms)
    try:
        latency_ms = int(config.get("AI", "test_mock_sleep_ms", fallback="0") or 0)
    except ValueError:
        latency_ms = 0
    if latency_ms > 0:
        time.sleep(latency_ms / 1000.0)

    for candidate in candidates:
        if not candidate.exists():
            continue
        try:
            with candidate.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            logging.warning("Failed to load mock response '%s': %s", candidate, exc)
            break

        response = payload.get("response", payload) if isinstance(payload, dict) else payload
        usage = payload.get("usage", {"cost": 0.0}) if isinstance(payload, dict) else {"cost": 0.0}
        if not isinstance(usage, dict):
            usage = {"cost": float(usage)}

        if isinstance(response, (dict, list)):
            response_text = json.dumps(response, ensure_ascii=False)
        elif response is None:
            response_text = None
        else:
            response_text = str(response)

        logging.debug("Loaded mock response '%s' (task=%s, call=%d).", candidate, task, index)
        return response_text, usage

    logging.info(
        "Mock response not found (task=%s, call=%d). Checked %s.",
        task,
        index,
        ", ".join(str(p) for p in candidates),
    )
    return None, {"cost": 0.0}
