"""Abstract base class for providers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
from .schema import ResourceSchema


class Provider(ABC):
    """
    Abstract interface for the boundary with a cloud (or simulated) API.

    Providers own the resource schemas and perform the create/read/update/delete
    calls. They signal failures with:
    - TransientProviderError: rate limiting, timeouts; the executor retries
    - FatalProviderError: permission denied, invalid parameter, quota; never retried
    """

    name: str = "provider"

    @abstractmethod
    def schema(self, resource_type: str) -> ResourceSchema:
        """
        Return the schema for a resource type.

        Raises:
            SchemaViolation: If the type is not supported by this provider
        """
        pass

    @abstractmethod
    def read(self, resource_type: str, provider_id: str) -> Optional[Dict[str, Any]]:
        """Return live attributes, or None if the resource no longer exists."""
        pass

    @abstractmethod
    def create(
        self,
        resource_type: str,
        attributes: Dict[str, Any],
        idempotency_key: Optional[str] = None
    ) -> Tuple[str, Dict[str, Any]]:
        """
        Create a resource.

        Args:
            resource_type: Resource type tag
            attributes: Fully resolved attributes
            idempotency_key: Key identifying this create; a repeated key must
                return the resource created the first time where supported

        Returns:
            Tuple of (provider_id, applied attributes)
        """
        pass

    @abstractmethod
    def update(self, resource_type: str, provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """Update a resource in place; return applied attributes."""
        pass

    @abstractmethod
    def delete(self, resource_type: str, provider_id: str) -> None:
        """Delete a resource."""
        pass
