"""Domain types for node identity resolution."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# Label keys written onto resolved nodes
LABEL_ROLE_LEGACY = "kubernetes.io/role"
LABEL_ROLE_PREFIX = "node-role.kubernetes.io/"
LABEL_INSTANCE_GROUP = "kops.k8s.io/instancegroup"

ROLE_MASTER = "master"
ROLE_NODE = "node"

# Tag keys read from the instance record
TAG_LABEL_PREFIX = "k8s:labels:"
TAG_INSTANCE_GROUP = "kops.k8s.io/instancegroup"
TAG_CONTROL_PLANE = "k8s.io/role/master"

# Instance group name that marks the default worker pool
DEFAULT_WORKER_GROUP = "nodes"

LabelSet = dict[str, str]


class MalformedReferenceError(ValueError):
    """Raised when a provider node reference does not have the expected shape."""

    pass


@dataclass(frozen=True)
class ProviderNodeReference:
    """A parsed provider reference, e.g. ``aws:///us-east-1a/i-0abc``.

    After the scheme the reference splits into exactly three ``/`` tokens:
    the (usually empty) host token, the locality and the instance id.
    """

    provider: str
    locality: str
    instance_id: str

    @classmethod
    def parse(
        cls, provider_id: str, provider: str, node_name: str | None = None
    ) -> "ProviderNodeReference":
        node = node_name or "<unknown>"
        if not provider_id:
            raise MalformedReferenceError(f"providerID was not set for node {node}")

        prefix = f"{provider}://"
        if not provider_id.startswith(prefix):
            raise MalformedReferenceError(
                f"providerID {provider_id!r} not recognized for node {node}"
            )

        tokens = provider_id[len(prefix) :].split("/")
        if len(tokens) != 3 or not tokens[2]:
            raise MalformedReferenceError(
                f"providerID {provider_id!r} not recognized for node {node}"
            )

        return cls(provider=provider, locality=tokens[1], instance_id=tokens[2])


@dataclass(frozen=True)
class InstanceRecord:
    """The provider's description of one running instance."""

    instance_id: str
    lifecycle: str | None = None
    tags: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_ec2(cls, instance: Mapping[str, Any]) -> "InstanceRecord":
        """Build from one entry of an EC2 DescribeInstances reservation."""
        tags = {tag.get("Key", ""): tag.get("Value", "") for tag in instance.get("Tags") or []}
        return cls(
            instance_id=instance["InstanceId"],
            lifecycle=instance.get("InstanceLifecycle") or None,
            tags=tags,
        )
