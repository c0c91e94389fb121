"""Oracle-related exceptions."""


class OracleError(Exception):
    """Base exception for diagnostic and repair oracle errors."""


class OracleAuthError(OracleError):
    """Authentication with the oracle backend failed."""


class OracleAPIError(OracleError):
    """Oracle API request failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code if available
        """
        super().__init__(message)
        self.status_code = status_code


class OracleResponseError(OracleError):
    """The oracle answered with something unusable."""
