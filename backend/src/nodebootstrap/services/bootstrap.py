"""Bootstrap service: request decoding, identity resolution and issuance."""

import json
import logging
from dataclasses import dataclass

from opentelemetry import trace
from pydantic import ValidationError

from nodebootstrap.api.schemas import BOOTSTRAP_API_VERSION, BootstrapRequest, BootstrapResponse
from nodebootstrap.ca.certificate_generator import USAGE_CLIENT, CertificateGenerator
from nodebootstrap.ca.keystore import KeyStore
from nodebootstrap.domain.models import LabelSet
from nodebootstrap.identity.base import IdentityResolver, IdentityResolverError
from nodebootstrap.metrics import bootstrap_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ISSUING_CA = "ca"


class BootstrapRequestError(Exception):
    """Raised when a bootstrap request is rejected before processing."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class NodeCertificateProfile:
    """How a requested certificate name maps onto a subject."""

    common_name: str
    organizations: tuple[str, ...] = ()
    usage: str = USAGE_CLIENT

    def for_node(self, node_name: str) -> "NodeCertificateProfile":
        return NodeCertificateProfile(
            common_name=self.common_name.format(node=node_name),
            organizations=self.organizations,
            usage=self.usage,
        )


CERTIFICATE_PROFILES: dict[str, NodeCertificateProfile] = {
    "kubelet": NodeCertificateProfile("system:node:{node}", ("system:nodes",)),
    "kube-proxy": NodeCertificateProfile("system:kube-proxy"),
}


class BootstrapService:
    """Coordinates request validation, node identity and certificate issuance."""

    def __init__(self, keystore: KeyStore, resolver: IdentityResolver | None = None) -> None:
        self.keystore = keystore
        self.resolver = resolver

    def decode_request(self, body: bytes) -> BootstrapRequest:
        """Validate a raw request body.

        Checked in order: body present, body is a JSON object, apiVersion
        matches, remaining envelope is well formed. The version is checked
        before any other field is looked at.

        Raises:
            BootstrapRequestError: On the first failed check.
        """
        if not body:
            raise BootstrapRequestError("no body", "NO_BODY")

        try:
            raw = json.loads(body)
        except (ValueError, RecursionError) as e:
            raise BootstrapRequestError(f"failed to decode: {e}", "DECODE_ERROR") from e
        if not isinstance(raw, dict):
            raise BootstrapRequestError(
                "failed to decode: expected a JSON object", "DECODE_ERROR"
            )

        if raw.get("apiVersion") != BOOTSTRAP_API_VERSION:
            raise BootstrapRequestError("unexpected APIVersion", "VERSION_MISMATCH")

        try:
            return BootstrapRequest.model_validate(raw)
        except ValidationError as e:
            raise BootstrapRequestError(f"failed to decode: {e}", "DECODE_ERROR") from e

    async def handle(
        self, request: BootstrapRequest, remote_addr: str | None = None
    ) -> BootstrapResponse:
        """Produce the response for a validated request.

        The caller is not authenticated yet, so neither identity resolution nor
        issuance runs on this path and the response carries no certificates.
        """
        with tracer.start_as_current_span("BootstrapService.handle") as span:
            span.set_attribute("remote_addr", remote_addr or "")
            span.set_attribute("requested_certs", sorted(request.certs))

            if request.certs:
                logger.info(
                    "bootstrap_certs_not_issued",
                    extra={
                        "remote_addr": remote_addr,
                        "requested": sorted(request.certs),
                        "reason": "caller_not_authenticated",
                    },
                )
            return BootstrapResponse()

    async def resolve_node(self, provider_id: str, node_name: str | None = None) -> LabelSet:
        """Resolve a node's labels through the configured identity resolver."""
        if self.resolver is None:
            raise IdentityResolverError("no identity resolver configured")
        return await self.resolver.resolve(provider_id, node_name)

    def issue_certificates(self, node_name: str, requested: dict[str, str]) -> dict[str, str]:
        """Sign each requested public key with the cluster CA.

        Either every requested certificate is issued or none is returned.

        Raises:
            BootstrapRequestError: For a cert name with no profile.
            UnknownAuthorityError: If the issuing CA is not loaded.
            CertificateGenerationError: If signing fails.
        """
        with tracer.start_as_current_span("BootstrapService.issue_certificates") as span:
            span.set_attribute("node_name", node_name)

            unknown = sorted(set(requested) - set(CERTIFICATE_PROFILES))
            if unknown:
                raise BootstrapRequestError(
                    f"unexpected key name(s): {', '.join(unknown)}", "UNKNOWN_CERT"
                )

            if not requested:
                return {}

            generator = CertificateGenerator(self.keystore.get(ISSUING_CA))

            issued: dict[str, str] = {}
            for name, public_key_pem in requested.items():
                profile = CERTIFICATE_PROFILES[name].for_node(node_name)
                result = generator.generate(
                    public_key_pem,
                    common_name=profile.common_name,
                    organizations=profile.organizations,
                    usage=profile.usage,
                )
                issued[name] = result.certificate_pem

            for name in issued:
                bootstrap_metrics.record_certificate_issued(name)
            logger.info(
                "node_certificates_issued",
                extra={"node_name": node_name, "certs": sorted(issued)},
            )
            return issued
