"""Error taxonomy shared by the extraction, provider and splice stages."""


class IllustratorError(Exception):
    pass


class ExtractionError(IllustratorError):
    """The semantic provider answered with something that is not the expected
    `{title, sections: [...]}` object, or could not be reached at all."""


# The HTTP layer and older callers know this one as AnalysisError
AnalysisError = ExtractionError


class ProviderError(IllustratorError):
    """A single search/generation provider failed. Never leaves the chain."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ConfigurationGap(IllustratorError):
    """No credentials for a provider. Adapters turn this into an empty result."""


class SpliceConflictError(IllustratorError):
    """Two fragments target the same insertion index and ties are configured as errors."""


class EmptyDocumentError(IllustratorError, ValueError):
    pass


class SpliceWarning(UserWarning):
    """Anchor not present verbatim in the document; the fragment is dropped."""

    def __init__(self, anchor: str, reason: str = "anchor not found"):
        super().__init__(f"{reason}: {anchor[:50]!r}")
        self.anchor = anchor
        self.reason = reason
