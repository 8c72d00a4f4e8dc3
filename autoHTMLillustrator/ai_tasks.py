import json
import logging
from typing import Any, Dict, Tuple

from autoHTMLillustrator.llm_client import run_chat
from autoHTMLillustrator.config import config, get_float, get_int
from autoHTMLillustrator.errors import EmptyDocumentError, ExtractionError
from autoHTMLillustrator.ai_common import (
    apply_text_budget,
    json_guard,
    log_llm_request,
    tokenize_text,
)

DEFAULT_MODEL = "openai/gpt-4o-mini"

ANALYSIS_PROMPT = """You are an expert editor who illustrates long-form blog posts.

Analyze the blog post (HTML) below, decide where images should be inserted and answer in JSON.

## Rules
1. At least 2 images per section: for every section you pick, plan at least 2, ideally 3-4 images.
2. Prefer multi-image layouts: use "grid-2", "grid-3" or "grid-4" rather than a single image.
3. English keywords: search keywords MUST be in English regardless of the language of the post
   (they are sent to English stock-photo search engines).
4. Concrete keywords: describe visual, photographable situations instead of abstract words.
5. "insertAfter" MUST be copied verbatim from the post (an HTML tag or sentence that occurs
   exactly once); the images are inserted directly after it.

## Layouts (use only these values)
- "grid-2": two images side by side
- "grid-3": three images side by side
- "grid-4": four images
- "compare": two images compared (before/after, A vs B)
- "single-landscape": one wide key image, only when really important
- "single-portrait": one tall image

## Response format (JSON)
{
  "title": "post title",
  "sections": [
    {
      "insertAfter": "verbatim text from the post",
      "searchKeywords": ["keyword1", "keyword2", "keyword3"],
      "layout": "grid-3",
      "caption": "caption in the language of the post",
      "altText": "image description",
      "reason": "why this section needs images"
    }
  ]
}
Answer with the JSON object only."""

TRANSLATE_PROMPT = """Translate the following keywords to English for an image search engine.
Keywords: "{keywords}"

Rules:
1. Return ONLY the translated keywords separated by commas.
2. Use simple, visual terms.
3. No explanations, no JSON."""


def analysis_model() -> str:
    return config.get("AI", "analysis_model", fallback=DEFAULT_MODEL).strip() or DEFAULT_MODEL


def translation_model() -> str:
    return config.get("AI", "translation_model", fallback="").strip() or analysis_model()


def analyze_sections(content: str, model: str = "") -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Ask the semantic provider where images belong.

    Returns (analysis, usage) where analysis is the parsed
    `{title, sections: [...]}` object. Raises ExtractionError when the
    provider cannot be reached or does not answer with that shape; there
    is no automatic retry.
    """
    if not content or not content.strip():
        raise EmptyDocumentError("Document is empty")
    model = model or analysis_model()
    token_limit = get_int("AI", "token_limit", 100_000)

    budget = apply_text_budget("sections", ANALYSIS_PROMPT, content, token_limit)
    if budget["abort"]:
        raise ExtractionError(f"Analysis instructions exceed token limit ({token_limit})")
    user = budget["user_text"]
    log_llm_request("sections", model, budget["used_tokens"] or tokenize_text(user), token_limit)

    messages = [
        {"role": "system", "content": ANALYSIS_PROMPT},
        {"role": "user", "content": user},
    ]
    try:
        answer, usage = run_chat(
            model,
            messages,
            json_mode=True,
            temperature=get_float("AI", "analysis_temperature", 0.3),
            max_tokens=get_int("AI", "analysis_max_tokens", 4000),
            task="sections",
        )
    except Exception as e:
        raise ExtractionError(f"Semantic analysis failed: {e}") from e

    try:
        analysis = json.loads(json_guard(answer))
    except ValueError as e:
        raise ExtractionError(f"Semantic analysis returned invalid JSON: {e}") from e
    if not isinstance(analysis, dict) or not isinstance(analysis.get("sections"), list):
        raise ExtractionError("Semantic analysis response has no 'sections' list")

    logging.info("Semantic analysis (%s): %d section(s) proposed", model, len(analysis["sections"]))
    return analysis, usage


def translate_text(keyword_string: str, model: str = "") -> Tuple[str, Dict[str, Any]]:
    model = model or translation_model()
    messages = [{"role": "user", "content": TRANSLATE_PROMPT.format(keywords=keyword_string)}]
    return run_chat(model, messages, temperature=0.0, max_tokens=100, task="translate")
