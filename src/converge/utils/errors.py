"""Custom exception classes for converge."""

from typing import List, Optional


class ConvergeError(Exception):
    """Base exception for all converge errors."""

    def __init__(self, message: str, address: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.address = address
        self.cause = cause

    def __str__(self) -> str:
        message = super().__str__()
        if self.address and self.address not in message:
            message = f"{self.address}: {message}"
        if self.cause is not None and str(self.cause) not in message:
            message = f"{message} (caused by: {self.cause})"
        return message


class DesiredStateLoadError(ConvergeError):
    """Raised when the desired-state document cannot be read or parsed."""
    pass


class SchemaViolation(ConvergeError):
    """Raised when a resource is missing a required attribute or has the wrong shape."""
    pass


class CyclicDependency(ConvergeError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, members: List[str], message: Optional[str] = None):
        self.members = list(members)
        if message is None:
            message = f"Dependency cycle detected: {' -> '.join(self.members + self.members[:1])}"
        super().__init__(message)


class ProviderError(ConvergeError):
    """Base class for errors raised at the provider boundary."""
    pass


class TransientProviderError(ProviderError):
    """Raised for retryable provider failures (rate limiting, timeouts)."""
    pass


class FatalProviderError(ProviderError):
    """Raised for provider failures that retrying cannot fix (permission, quota, invalid state)."""
    pass


class StateError(ConvergeError):
    """Raised when the state store cannot be read or written."""
    pass


class StateConflict(StateError):
    """Raised when the state store was modified by another writer."""
    pass


class ConfigError(ConvergeError):
    """Raised when configuration is invalid or missing."""
    pass


class PolicyError(ConvergeError):
    """Raised when a policy file is invalid."""
    pass
