"""Engine error types."""


class ValidationError(ValueError):
    """Input outside the domain an engine operation accepts.

    Raised before any computation starts; no partial result is produced.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field
