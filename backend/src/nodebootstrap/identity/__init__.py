"""Node identity resolution against cloud provider records."""

from nodebootstrap.identity.base import (
    AmbiguousInstanceError,
    IdentityResolver,
    IdentityResolverError,
    InstanceNotFoundError,
)


def new_identity_resolver(provider: str, region: str | None = None) -> IdentityResolver:
    """Return the resolver for a cloud provider name."""
    if provider == "aws":
        from nodebootstrap.identity.aws import new_ec2_identity_resolver

        return new_ec2_identity_resolver(region)
    raise IdentityResolverError(f"unsupported cloud provider {provider!r}")


__all__ = [
    "AmbiguousInstanceError",
    "IdentityResolver",
    "IdentityResolverError",
    "InstanceNotFoundError",
    "new_identity_resolver",
]
