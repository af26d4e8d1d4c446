"""EC2-backed identity resolver.

Each resolution issues one DescribeInstances call filtered to the referenced
instance id. Results are never cached: a terminated or replaced instance must
stop resolving as soon as EC2 says so.
"""

import asyncio
import logging
import time
from typing import Any

import boto3
from botocore.utils import InstanceMetadataRegionFetcher
from opentelemetry import trace

from nodebootstrap.domain.labels import derive_labels
from nodebootstrap.domain.models import (
    InstanceRecord,
    LabelSet,
    MalformedReferenceError,
    ProviderNodeReference,
)
from nodebootstrap.identity.base import (
    AmbiguousInstanceError,
    IdentityResolverError,
    InstanceNotFoundError,
)
from nodebootstrap.metrics import bootstrap_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

PROVIDER = "aws"


class Ec2IdentityResolver:
    """Resolves ``aws:///<zone>/<instance-id>`` references against EC2."""

    def __init__(self, ec2_client: Any) -> None:
        """Initialize with an EC2 client.

        Args:
            ec2_client: A boto3 EC2 client (or a stubbed one in tests).
        """
        self._ec2 = ec2_client

    async def resolve(self, provider_id: str, node_name: str | None = None) -> LabelSet:
        with tracer.start_as_current_span("Ec2IdentityResolver.resolve") as span:
            span.set_attribute("provider_id", provider_id)
            start_time = time.time()

            try:
                reference = ProviderNodeReference.parse(provider_id, PROVIDER, node_name)
            except MalformedReferenceError:
                bootstrap_metrics.record_identity_resolution("malformed", time.time() - start_time)
                raise

            span.set_attribute("instance_id", reference.instance_id)

            try:
                instance = await asyncio.to_thread(self._get_instance, reference.instance_id)
            except InstanceNotFoundError:
                bootstrap_metrics.record_identity_resolution("not_found", time.time() - start_time)
                raise
            except AmbiguousInstanceError:
                bootstrap_metrics.record_identity_resolution("ambiguous", time.time() - start_time)
                raise
            except Exception:
                bootstrap_metrics.record_identity_resolution("error", time.time() - start_time)
                raise

            labels = derive_labels(instance)
            duration = time.time() - start_time
            bootstrap_metrics.record_identity_resolution("success", duration)

            logger.info(
                "node_identity_resolved",
                extra={
                    "node_name": node_name,
                    "instance_id": reference.instance_id,
                    "locality": reference.locality,
                    "label_count": len(labels),
                    "duration_seconds": duration,
                },
            )
            return labels

    def _get_instance(self, instance_id: str) -> InstanceRecord:
        """Query EC2 for exactly one instance with the given id."""
        resp = self._ec2.describe_instances(InstanceIds=[instance_id])

        instances = [
            instance
            for reservation in resp.get("Reservations", [])
            for instance in reservation.get("Instances", [])
        ]
        if not instances:
            raise InstanceNotFoundError(f"missing instance id: {instance_id}")
        if len(instances) > 1:
            raise AmbiguousInstanceError(
                f"found multiple instances with instance id: {instance_id}"
            )

        return InstanceRecord.from_ec2(instances[0])


def _log_api_call(model: Any, **kwargs: Any) -> None:
    logger.debug(
        "aws_api_request",
        extra={"service": model.service_model.service_name, "operation": model.name},
    )


def discover_region() -> str:
    """Read the instance's region from the EC2 metadata service."""
    region = InstanceMetadataRegionFetcher().retrieve_region()
    if not region:
        raise IdentityResolverError("error querying ec2 metadata service (for region)")
    return region


def new_ec2_identity_resolver(region: str | None = None) -> Ec2IdentityResolver:
    """Build a resolver with its own EC2 client.

    Args:
        region: AWS region; discovered from instance metadata when not set.
    """
    if not region:
        region = discover_region()

    try:
        ec2_client = boto3.client("ec2", region_name=region)
    except Exception as e:
        raise IdentityResolverError(f"error starting new AWS session: {e}") from e

    ec2_client.meta.events.register("before-call.ec2.*", _log_api_call)

    logger.info("ec2_identity_resolver_created", extra={"region": region})
    return Ec2IdentityResolver(ec2_client)
