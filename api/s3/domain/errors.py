from typing import List, Optional


class NotFoundError(ValueError):
    """A referenced file, folder or user does not exist."""


class ValidationFailedError(ValueError):
    """Input was rejected by a security check; ``details`` lists the individual problems."""

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details
