import os
import json
import logging
import io
from contextlib import redirect_stdout, redirect_stderr
from typing import Any, Dict, List, Optional, Tuple
from autoHTMLillustrator.config import config as app_config
from autoHTMLillustrator import cache, mock_provider
import hashlib

import litellm
from litellm import completion

# Keep LiteLLM's own logger quiet at INFO
logging.getLogger("litellm").setLevel(logging.WARNING)


# Very small price map; values are $ per 1k tokens as (input, output)
# Unknown models default to 0 cost.
_PRICE_MAP: Dict[str, Tuple[float, float]] = {
    "openai/gpt-4o": (0.005, 0.015),
    "openai/gpt-4o-mini": (0.0005, 0.0015),
    "anthropic/claude-3-haiku-20240307": (0.00025, 0.00125),
    "anthropic/claude-3-5-haiku-20241022": (0.0008, 0.004),
    "gemini/gemini-1.5-flash": (0.000075, 0.0003),
}

# Values shipped in sample .env files; treated as "no key"
_DUMMY_KEYS = {"", "sk-xxxxx", "your_openai_api_key", "your_anthropic_api_key"}

_ENV_BY_PROVIDER = {
    "openai": ("OPENAI_API_KEY", ("OPENAI-API", "OPENAI")),
    "anthropic": ("ANTHROPIC_API_KEY", ("ANTHROPIC-API", "ANTHROPIC")),
    "gemini": ("GEMINI_API_KEY", ("GEMINI-API", "GEMINI")),
}


def infer_provider(model: str) -> Dict[str, str]:
    name = (model or "").lower()
    if name.startswith("openai/") or name.startswith("gpt-"):
        return {"provider": "openai", "family": "openai"}
    if name.startswith("anthropic/") or name.startswith("claude-"):
        return {"provider": "anthropic", "family": "anthropic"}
    if name.startswith("gemini/") or name.startswith("google/") or name.startswith("gemini-"):
        return {"provider": "gemini", "family": "google"}
    if name.startswith("ollama/"):
        return {"provider": "ollama", "family": "local"}
    if mock_provider.is_mock_model(model):
        return {"provider": "mock", "family": "local"}
    return {"provider": "unknown", "family": "unknown"}


def _key_from_config(sections) -> Optional[str]:
    for section in sections:
        try:
            key = app_config.get(section, "API-Key", fallback=None) or app_config.get(section, "api_key", fallback=None)
        except Exception:
            key = None
        if key and key.strip() not in _DUMMY_KEYS:
            return key.strip()
    return None


def _usable(value: Optional[str]) -> bool:
    return bool(value) and value.strip() not in _DUMMY_KEYS


def has_credentials(model: str) -> bool:
    """True when `model` can be called without raising for a missing key."""
    if not model:
        return False
    prov = infer_provider(model)["provider"]
    if prov in ("ollama", "mock"):
        return True
    if prov not in _ENV_BY_PROVIDER:
        return False
    env_name, sections = _ENV_BY_PROVIDER[prov]
    if prov == "gemini" and _usable(os.getenv("GOOGLE_AI_API_KEY")):
        return True
    return _usable(os.getenv(env_name)) or _key_from_config(sections) is not None


def _compute_cost(model: str, usage: Dict[str, Any]) -> float:
    rates = _rates_from_config(model) or _PRICE_MAP.get(model)
    if not rates:
        info = infer_provider(model)
        base = model.split('/')[-1].lower()
        rates = _PRICE_MAP.get(f"{info['provider']}/{base}")
        if not rates and info["provider"] == "openai":
            # Dated variants map to the nearest known rate
            if "gpt-4o-mini" in base:
                rates = _PRICE_MAP["openai/gpt-4o-mini"]
            elif "gpt-4o" in base:
                rates = _PRICE_MAP["openai/gpt-4o"]
    if not rates:
        logging.debug("Cost estimation: unknown rates for model '%s' (usage=%s)", model, usage)
        return 0.0
    prompt = int(usage.get("prompt_tokens", 0) or 0)
    completion_tokens = int(usage.get("completion_tokens", 0) or 0)
    return prompt * rates[0] / 1000.0 + completion_tokens * rates[1] / 1000.0


def _rates_from_config(model: str) -> Optional[Tuple[float, float]]:
    """Read "{model}.input_per_1k" / "{model}.output_per_1k" from [PRICING]."""
    if not app_config.has_section("PRICING"):
        return None
    try:
        i = app_config.get("PRICING", f"{model}.input_per_1k", fallback=None)
        o = app_config.get("PRICING", f"{model}.output_per_1k", fallback=None)
        if i is None or o is None:
            return None
        return float(i), float(o)
    except Exception:
        return None


def _litellm_cost(resp: Any) -> Optional[float]:
    """Cost via LiteLLM's helper, or None when it cannot price the response."""
    fn = getattr(litellm, "completion_cost", None)
    if not callable(fn):
        return None
    try:
        return float(fn(completion_response=resp))
    except Exception:
        return None


def _ensure_env_for_provider(model: str) -> None:
    prov = infer_provider(model)["provider"]
    if prov not in _ENV_BY_PROVIDER:
        return
    env_name, sections = _ENV_BY_PROVIDER[prov]
    if _usable(os.getenv(env_name)):
        return
    if prov == "gemini" and _usable(os.getenv("GOOGLE_AI_API_KEY")):
        os.environ[env_name] = os.environ["GOOGLE_AI_API_KEY"]
        return
    key = _key_from_config(sections)
    if key:
        os.environ[env_name] = key
    else:
        raise RuntimeError("Missing %s in environment for model: %s" % (env_name, model))


def _cache_key(model: str, messages: List[Dict[str, Any]], json_mode: bool, temperature, max_tokens) -> str:
    key_obj = {
        "v": 1,
        "type": "chat",
        "model": model,
        "json_mode": bool(json_mode),
        "temperature": float(temperature) if temperature is not None else None,
        "max_tokens": int(max_tokens) if max_tokens is not None else None,
        "messages": [{"role": m.get("role"), "content": m.get("content")} for m in messages],
    }
    key_str = json.dumps(key_obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(key_str.encode("utf-8")).hexdigest()


def run_chat(
    model: str,
    messages: List[Dict[str, Any]],
    json_mode: bool = False,
    temperature: float = 0.3,
    max_tokens: Optional[int] = None,
    task: str = "chat",
) -> Tuple[str, Dict[str, Any]]:
    """Run a chat completion via LiteLLM.

    Returns (text, usage) where usage carries a computed 'cost'. `TEST/`
    models are answered from canned responses (see mock_provider) using
    `task` to pick the response file.
    """
    if mock_provider.is_mock_model(model):
        text, usage = mock_provider.fetch(task)
        if text is None:
            raise RuntimeError(f"No mock response available for task '{task}'")
        return text, usage

    _ensure_env_for_provider(model)

    key = _cache_key(model, messages, json_mode, temperature, max_tokens)
    cached = cache.get("chat", key)
    if cached and "text" in cached:
        logging.info("Chat cache hit (model=%s)", model)
        saved = float((cached.get("usage") or {}).get("cost", 0.0) or 0.0)
        return str(cached.get("text") or ""), {"cost": 0.0, "saved_cost": saved, "cache_hit": True}

    kwargs: Dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": float(temperature),
    }
    if json_mode and infer_provider(model)["provider"] in ("openai", "gemini", "ollama"):
        kwargs["response_format"] = {"type": "json_object"}
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens

    logging.debug("LLM chat request: %s", {k: v for k, v in kwargs.items() if k != "messages"})
    # Some providers print to stdout/stderr; keep that out of CLI output
    _buf_out, _buf_err = io.StringIO(), io.StringIO()
    with redirect_stdout(_buf_out), redirect_stderr(_buf_err):
        resp = completion(**kwargs)
    if _buf_out.getvalue().strip():
        logging.debug("LiteLLM stdout: %s", _buf_out.getvalue().strip())
    if _buf_err.getvalue().strip():
        logging.debug("LiteLLM stderr: %s", _buf_err.getvalue().strip())

    try:
        text = resp["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        # Some providers return objects; try attribute access
        text = getattr(resp.choices[0].message, "content", "")
    raw_usage = resp.get("usage", {}) if isinstance(resp, dict) else getattr(resp, "usage", None)
    usage: Dict[str, Any] = {}
    if raw_usage:
        usage = {
            k: (raw_usage.get(k, 0) if isinstance(raw_usage, dict) else getattr(raw_usage, k, 0))
            for k in ("prompt_tokens", "completion_tokens", "total_tokens")
        }
    cost = _litellm_cost(resp) if not isinstance(resp, dict) else None
    if cost is None:
        cost = _compute_cost(model, usage)
    usage["cost"] = cost
    usage["saved_cost"] = 0.0
    usage["cache_hit"] = False
    cache.set("chat", key, {"text": text or "", "usage": usage})
    return text or "", usage
