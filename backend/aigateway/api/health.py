"""
Health API endpoint - Reports the upstream inference service status.
"""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from .deps import get_inference_client
from ..inference import InferenceClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(inference_client: InferenceClient = Depends(get_inference_client)):
    """
    Check the upstream inference service.

    Returns:
        The upstream health report; 200 when healthy, 503 otherwise
    """
    report = await inference_client.health_check()
    if report.is_degraded:
        logger.warning(
            f"Upstream degraded - routerAvailable: {report.router_available}, uptime: {report.uptime}"
        )
    status_code = status.HTTP_200_OK if report.is_healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=report.model_dump())
