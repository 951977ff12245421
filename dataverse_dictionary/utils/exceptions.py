"""
Exception hierarchy for the data dictionary builder.

Validation and lookup failures are raised before any metadata is fetched;
fetch failures unwind the whole run so no partial dictionary is produced.
"""
from typing import Optional


class DataDictionaryError(Exception):
    """Base class for all data dictionary errors."""
    pass


class ConfigurationError(DataDictionaryError):
    """
    Raised for configuration problems.

    This includes:
    - Missing client config file
    - Missing environment URL or access token
    - Invalid values in the YAML config
    """
    pass


class InvalidInputError(DataDictionaryError):
    """Raised when the solution unique name is missing or empty."""
    pass


class SolutionNotFoundError(DataDictionaryError):
    """Raised when a solution unique name does not resolve."""

    def __init__(self, solution_name: str):
        self.solution_name = solution_name
        super().__init__(f"Solution '{solution_name}' not found.")


class FetchFailureError(DataDictionaryError):
    """
    Raised when a component, metadata or web resource fetch fails.

    Covers access denied, transient service errors that outlived the retry
    budget, and referenced objects that no longer exist.
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 url: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)
