"""Bootstrap API endpoint called by booting nodes."""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from nodebootstrap.api.schemas import BootstrapResponse, ErrorResponse
from nodebootstrap.metrics import bootstrap_metrics
from nodebootstrap.services.bootstrap import BootstrapRequestError, BootstrapService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bootstrap"])

# Global service instance, set during startup
_bootstrap_service: BootstrapService | None = None


def set_bootstrap_service(service: BootstrapService) -> None:
    """Set the global bootstrap service instance."""
    global _bootstrap_service
    _bootstrap_service = service


def get_bootstrap_service() -> BootstrapService:
    """Get the global bootstrap service instance."""
    if _bootstrap_service is None:
        raise RuntimeError("BootstrapService not initialized")
    return _bootstrap_service


@router.post(
    "/bootstrap",
    response_model=BootstrapResponse,
    responses={400: {"model": ErrorResponse}},
)
async def bootstrap(
    request: Request,
    service: BootstrapService = Depends(get_bootstrap_service),
) -> BootstrapResponse | JSONResponse:
    """Accept a bootstrap request from a node.

    Returns 400 for a missing or malformed body or an unsupported apiVersion.
    """
    remote_addr = request.client.host if request.client else None
    body = await request.body()

    try:
        bootstrap_request = service.decode_request(body)
    except BootstrapRequestError as e:
        logger.info(
            "bootstrap_rejected",
            extra={"remote_addr": remote_addr, "code": e.code, "reason": str(e)},
        )
        bootstrap_metrics.record_bootstrap_request(e.code.lower())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(error=str(e), code=e.code).model_dump(),
        )

    response = await service.handle(bootstrap_request, remote_addr)

    bootstrap_metrics.record_bootstrap_request("success")
    logger.info("bootstrap_success", extra={"remote_addr": remote_addr})
    return response
