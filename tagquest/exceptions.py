class TagQuestError(Exception):
    """Base exception for the project."""


class CatalogLoadError(TagQuestError):
    """Raised when a catalog CSV cannot be read or lacks required columns."""


class TaxonomyError(TagQuestError):
    """Raised when the taxonomy file is missing or malformed."""


class SessionStoreError(TagQuestError):
    """Raised when the session database cannot be read or written."""


class SessionNotFoundError(SessionStoreError):
    """Raised when a session id does not exist."""


class VerificationError(TagQuestError):
    """Raised when an external metadata client is misconfigured."""
