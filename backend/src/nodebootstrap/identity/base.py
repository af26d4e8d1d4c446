"""Identity resolver contract and errors."""

from typing import Protocol

from nodebootstrap.domain.models import LabelSet, MalformedReferenceError


class IdentityResolverError(Exception):
    """Raised when a node's identity cannot be resolved."""

    pass


class InstanceNotFoundError(IdentityResolverError):
    """Raised when no instance matches the referenced instance id."""

    pass


class AmbiguousInstanceError(IdentityResolverError):
    """Raised when more than one instance matches the referenced instance id."""

    pass


class IdentityResolver(Protocol):
    """Derives trusted node labels from the cloud provider's own records."""

    async def resolve(self, provider_id: str, node_name: str | None = None) -> LabelSet:
        """Resolve a provider reference into the node's label set.

        Raises:
            MalformedReferenceError: The reference has the wrong shape.
            InstanceNotFoundError: No instance matches.
            AmbiguousInstanceError: Several instances match.
        """
        ...


__all__ = [
    "AmbiguousInstanceError",
    "IdentityResolver",
    "IdentityResolverError",
    "InstanceNotFoundError",
    "MalformedReferenceError",
]
