import json
import logging
from functools import lru_cache

import tiktoken


@lru_cache(maxsize=1)
def _encoding():
    return tiktoken.get_encoding("cl100k_base")


def tokenize_text(text: str) -> int:
    """Estimate token count for a string.
    Uses tiktoken (cl100k_base); falls back to len(text)//4 when the
    encoding tables cannot be loaded (offline first run).
    Returns at least 1 when text is non-empty.
    """
    if not text:
        return 0
    try:
        return len(_encoding().encode(text))
    except Exception as exc:
        logging.debug("tiktoken unavailable (%s); using length estimate", exc)
        return max(1, len(text) // 4)


def apply_text_budget(kind: str, system_text: str, user_text: str, token_limit: int):
    """Fit a system+user text pair into `token_limit` tokens.

    - Preserves the system_text fully.
    - If the instructions alone exceed the limit, returns abort=True.
    - Otherwise trims user_text proportionally and logs an INFO when it does.

    Returns a dict with keys 'abort', 'reason', 'user_text', 'used_tokens'.
    """
    intro_tokens = tokenize_text(system_text)
    user_tokens = tokenize_text(user_text)
    if intro_tokens > token_limit:
        logging.info(
            "[%s budget] instructions exceed limit (intro≈%d > limit=%d); aborting request",
            kind, intro_tokens, token_limit,
        )
        return {'abort': True, 'reason': 'intro_exceeds_limit', 'user_text': user_text, 'used_tokens': intro_tokens}
    total = intro_tokens + user_tokens
    if total > token_limit:
        budget = max(0, token_limit - intro_tokens)
        ratio = budget / max(1, user_tokens)
        user_text = user_text[: max(1, int(len(user_text) * ratio))]
        used = intro_tokens + tokenize_text(user_text)
        logging.info("[%s budget] trimmed document to fit limit (used_tokens≈%d/%d)", kind, used, token_limit)
        return {'abort': False, 'reason': None, 'user_text': user_text, 'used_tokens': used}
    return {'abort': False, 'reason': None, 'user_text': user_text, 'used_tokens': total}


def log_llm_request(kind: str, model: str, total_tokens: int, token_limit: int) -> None:
    logging.debug("[%s request] model=%s tokens≈%d/%d", kind, model, total_tokens, token_limit)


def json_guard(text: str) -> str:
    """Return a JSON object string extracted from model output.

    - If `text` is empty/None, return "{}".
    - If `text` is already valid JSON, return as-is.
    - Otherwise slice the outermost {...} substring (models like to wrap
      JSON in prose or code fences); fall back to "{}".
    """
    if not text:
        return "{}"
    try:
        json.loads(text)
        return text
    except ValueError:
        start = text.find("{")
        end = text.rfind("}")
        if start != -1 and end > start:
            return text[start : end + 1]
        return "{}"
