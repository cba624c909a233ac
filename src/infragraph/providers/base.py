"""Abstract base class for providers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple


class Provider(ABC):
    """
    Abstract interface to the remote API that owns real resources.

    The engine treats a provider as opaque. Implementations raise:
    - ProviderTransientError for throttling or transient network failures
      (the engine retries these with backoff)
    - ProviderFatalError for everything that must not be retried
    - ResourceNotFound from ``read`` (and optionally ``destroy``) when the
      object no longer exists

    All operations are coroutines; the engine cancels them when a run is
    cancelled.
    """

    name = "provider"

    @abstractmethod
    async def create(self, resource_type: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Create a resource.

        Args:
            resource_type: Resource type, e.g. aws_vpc
            attributes: Fully resolved attributes

        Returns:
            (provider-assigned id, exported attributes)
        """
        pass

    @abstractmethod
    async def update(self, resource_type: str, provider_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a resource in place.

        Args:
            resource_type: Resource type
            provider_id: Identifier returned by create
            changes: Changed attributes only (None means unset)

        Returns:
            Exported attributes after the update
        """
        pass

    @abstractmethod
    async def destroy(self, resource_type: str, provider_id: str) -> None:
        """Destroy a resource."""
        pass

    @abstractmethod
    async def read(self, resource_type: str, provider_id: str) -> Dict[str, Any]:
        """
        Read a resource's current exported attributes (used for drift detection).

        Raises:
            ResourceNotFound: If the resource no longer exists
        """
        pass
