"""Exception hierarchy for the trendpress pipeline.

Hierarchy:
    Exception
    +-- TrendpressError
        +-- NotFoundError
        +-- IllegalTransitionError
        +-- ConfigurationError
        +-- GenerationError
        +-- PublishError
"""

from __future__ import annotations


class TrendpressError(Exception):
    """Base exception for all trendpress errors."""


class NotFoundError(TrendpressError):
    """Raised when an opportunity, draft, job or account id is unknown.

    Attributes:
        kind: Entity name (``"opportunity"``, ``"draft"``, ...).
        ident: The id that was looked up.
    """

    def __init__(self, kind: str, ident: object):
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind.capitalize()} not found: {ident}")


class IllegalTransitionError(TrendpressError):
    """Raised when a status change is not allowed from the current state."""


class ConfigurationError(TrendpressError):
    """Raised when configuration is missing or invalid. Never retried."""


class GenerationError(TrendpressError):
    """Raised when the text-generation backend fails or returns junk."""


class PublishError(TrendpressError):
    """Raised by a publishing transport when delivery fails."""
