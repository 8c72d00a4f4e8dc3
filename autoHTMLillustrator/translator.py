import logging
import unicodedata
from typing import List

from autoHTMLillustrator import ai_tasks
from autoHTMLillustrator.llm_client import has_credentials


def _is_non_latin_letter(ch: str) -> bool:
    if not ch.isalpha():
        return False
    return not unicodedata.name(ch, "").startswith("LATIN")


def needs_translation(keywords: List[str]) -> bool:
    """True if any keyword contains letters outside the Latin script."""
    return any(_is_non_latin_letter(ch) for kw in keywords for ch in kw)


def translate_keywords(keywords: List[str], model: str = "") -> List[str]:
    """Return `keywords` in English, or unchanged when no translation is
    needed, no provider is configured, or the provider call fails."""
    if not keywords or not needs_translation(keywords):
        return list(keywords)

    model = model or ai_tasks.translation_model()
    if not has_credentials(model):
        logging.warning("No credentials for translation model '%s'; searching with original keywords", model)
        return list(keywords)

    keyword_string = ", ".join(keywords)
    logging.info("Translating keywords: \"%s\"", keyword_string)
    try:
        text, _usage = ai_tasks.translate_text(keyword_string, model)
    except Exception as e:
        logging.error("Translation failed: %s", e)
        return list(keywords)

    translated = [part.strip().strip('"') for part in (text or "").split(",")]
    translated = [part for part in translated if part]
    if not translated:
        logging.warning("Translation returned nothing; keeping original keywords")
        return list(keywords)
    logging.info("Translated: \"%s\"", ", ".join(translated))
    return translated
