"""Error taxonomy for the ingestion and enrichment pipelines.

A line that is not a wine (a header such as "RED WINES") is not an error:
extractors signal it by returning ``None``.
"""


class WineCatalogError(Exception):
    """Base class for all Wine Catalog errors."""


class ConfigurationError(WineCatalogError):
    """Raised when configuration is missing or inconsistent."""


class ExtractionFailed(WineCatalogError):
    """The knowledge-extraction call failed (transport or parse error)."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ExtractionTimeout(ExtractionFailed):
    """The knowledge-extraction call did not answer within its deadline."""


class ValidationFailure(ExtractionFailed):
    """The extraction payload parsed but its fields could not be validated."""


class RunAborted(WineCatalogError):
    """A failure that must stop the whole run rather than a single item."""


class StoreFailure(WineCatalogError):
    """The catalog store rejected a write or could not be read."""


class CatalogUnavailable(StoreFailure, RunAborted):
    """The catalog store lost its connection; no further item can succeed."""


class ProfileGenerationFailed(WineCatalogError):
    """The profile-generation service failed or timed out."""
