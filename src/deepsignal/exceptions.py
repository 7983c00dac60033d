"""deepsignal exception hierarchy."""


class DeepSignalError(Exception):
    """Base class for all deepsignal-specific exceptions."""


class NormalizationDepthError(DeepSignalError, RecursionError):
    """Raised when a value is nested deeper than the normalizer allows."""

    def __init__(self, limit):
        """Initialize the exception.

        Args:
            limit: The maximum nesting depth that was exceeded.
        """
        self.limit = limit
        super().__init__(f"Value is nested deeper than {limit} levels.")
