import logging
from typing import Callable, List, Optional, Sequence

from autoHTMLillustrator.config import get_list
from autoHTMLillustrator.InsertionSpec import SOURCE_GENERATE, SOURCE_SEARCH, ImageAsset
from autoHTMLillustrator.image_providers import (
    GENERATION_PROVIDERS,
    SEARCH_PROVIDERS,
    ImageProvider,
    build_providers,
    placeholder_images,
)
from autoHTMLillustrator.translator import translate_keywords


class ProviderChain:
    """Turns a keyword list into exactly-enough images.

    Order of attempts: translate keywords, search providers in priority
    order (first non-empty answer wins), optional generation, and finally
    placeholders, so `acquire` never returns an empty list and never raises
    because of a provider.
    """

    def __init__(
        self,
        search_providers: Sequence[ImageProvider] = (),
        generation_providers: Sequence[ImageProvider] = (),
        translate: Callable[[List[str]], List[str]] = translate_keywords,
    ):
        self.search_providers = list(search_providers)
        self.generation_providers = list(generation_providers)
        self.translate = translate

    def acquire(
        self,
        keywords: Sequence[str],
        required_count: int,
        allow_generation_fallback: bool = False,
        explicit_source: Optional[str] = None,
    ) -> List[ImageAsset]:
        count = max(1, int(required_count or 1))
        query = " ".join(self._translated(list(keywords)))

        if explicit_source == SOURCE_GENERATE:
            images = self.generate(query, count)
            if images:
                return images
            logging.warning("Generation produced nothing for \"%s\"; using placeholders", query)
            return placeholder_images(query, count)

        images = self.search(query, count)
        if images:
            return images

        # An explicit search source never falls through to generation
        if allow_generation_fallback and explicit_source != SOURCE_SEARCH:
            logging.info("No search results for \"%s\"; trying generation", query)
            images = self.generate(query, count)
            if images:
                return images

        logging.info("Using %d placeholder image(s) for \"%s\"", count, query)
        return placeholder_images(query, count)

    def search(self, query: str, count: int) -> List[ImageAsset]:
        return self._first_non_empty(self.search_providers, "search", query, count)

    def generate(self, prompt: str, count: int) -> List[ImageAsset]:
        return self._first_non_empty(self.generation_providers, "generate", prompt, count)

    def _translated(self, keywords: List[str]) -> List[str]:
        try:
            return self.translate(keywords) or keywords
        except Exception as e:
            logging.error("Keyword translation failed: %s", e)
            return keywords

    def _first_non_empty(self, providers, capability: str, query: str, count: int) -> List[ImageAsset]:
        for provider in providers:
            name = getattr(provider, "name", provider.__class__.__name__)
            try:
                images = getattr(provider, capability)(query, count)
            except Exception as e:
                logging.warning("%s %s failed: %s", name, capability, e)
                continue
            if images:
                images = list(images)[:count]
                logging.info("%s: \"%s\" -> %d image(s)", name, query, len(images))
                return images
            logging.debug("%s: no %s results for \"%s\"", name, capability, query)
        return []


def build_default_chain() -> ProviderChain:
    search = build_providers(get_list("PROVIDERS", "search_order", "unsplash, pexels, pixabay"), SEARCH_PROVIDERS)
    generation = build_providers(
        get_list("PROVIDERS", "generation_order", "google_imagen, openai_images"), GENERATION_PROVIDERS
    )
    return ProviderChain(search, generation)
