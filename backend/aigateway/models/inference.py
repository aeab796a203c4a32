"""
Inference Models - Wire structures exchanged with the upstream inference service.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class InferenceRequest(BaseModel):
    """Query sent to the inference service."""
    message: str
    session_id: str
    mode: str = "parallel"
    context: Optional[Dict[str, Any]] = None  # omitted from the payload when None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the wire, dropping absent fields."""
        return self.model_dump(exclude_none=True)


class ToolResult(BaseModel):
    """Result of one tool invoked by the inference service."""
    tool: Optional[str] = None
    result: Optional[str] = None
    score: Optional[float] = None
    execution_time: Optional[float] = None


class ResponseMetadata(BaseModel):
    """Routing details reported by the inference service."""
    complexity_score: Optional[float] = None
    selected_tools: Optional[List[str]] = None
    tool_results: Optional[List[ToolResult]] = None


class InferenceResponse(BaseModel):
    """Answer from the inference service. Also the cached response value."""
    success: bool
    message: str = ""
    session_id: Optional[str] = None
    processing_time: float = 0.0
    mode_used: Optional[str] = None
    metadata: Optional[ResponseMetadata] = None


class UpstreamHealth(BaseModel):
    """Health report of the inference service."""
    status: str  # healthy, degraded, unhealthy
    service: Optional[str] = None
    version: Optional[str] = None
    router_available: Optional[bool] = None
    uptime: Optional[str] = None

    @property
    def is_healthy(self) -> bool:
        return self.status.lower() == "healthy"

    @property
    def is_degraded(self) -> bool:
        return self.status.lower() == "degraded"

    @property
    def is_unhealthy(self) -> bool:
        return self.status.lower() == "unhealthy"
