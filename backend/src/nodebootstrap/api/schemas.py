"""Pydantic schemas for the bootstrap wire protocol."""

from pydantic import BaseModel, ConfigDict, Field

BOOTSTRAP_API_VERSION = "bootstrap.kops.k8s.io/v1alpha1"


class BootstrapRequest(BaseModel):
    """Request envelope sent by a booting node."""

    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(..., alias="apiVersion")
    # Cert name -> PEM public key the node wants signed
    certs: dict[str, str] = Field(default_factory=dict)


class BootstrapResponse(BaseModel):
    """Response envelope returned to the node."""

    # Cert name -> PEM certificate
    certs: dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    code: str
    detail: str | None = None
