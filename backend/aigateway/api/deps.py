"""
Service registry - The service graph shared by the API routes.

main.lifespan builds the graph once and registers it with init_services();
routes reach it through the get_* dependencies.
"""

from dataclasses import dataclass
from typing import Optional

from ..core.chat_service import ChatService
from ..core.session_manager import SessionManager
from ..inference import InferenceClient


@dataclass
class Services:
    session_manager: SessionManager
    chat_service: ChatService
    inference_client: InferenceClient


_services: Optional[Services] = None


def init_services(services: Optional[Services]) -> None:
    """
    Register the global service graph (None clears it).

    Args:
        services: Services built at startup
    """
    global _services
    _services = services


def get_services() -> Services:
    """
    Get the global service graph.

    Raises:
        RuntimeError: If services have not been initialized
    """
    if _services is None:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    return _services


def get_chat_service() -> ChatService:
    return get_services().chat_service


def get_session_manager() -> SessionManager:
    return get_services().session_manager


def get_inference_client() -> InferenceClient:
    return get_services().inference_client
