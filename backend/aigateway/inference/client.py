"""
Inference Client - Resilient caller for the upstream inference service.

query() never raises for upstream trouble. Timeouts, exhausted retries and
an open circuit produce a "fallback" response; requests the upstream
rejects (4xx) or answers unreadably produce an "error" response.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Coroutine, List, Optional, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from .circuit_breaker import CircuitBreaker
from .retry import execute_with_retry
from ..core.exceptions import CircuitOpen, UpstreamError, UpstreamTimeout
from ..models import InferenceRequest, InferenceResponse, UpstreamHealth

logger = logging.getLogger(__name__)

QUERY_PATH = "/api/chat/query"
HEALTH_PATH = "/api/health/"
ANALYZE_PATH = "/api/v1/internal/analyze"
EMBED_PATH = "/api/v1/internal/embed"

FALLBACK_MESSAGE = "The AI service is temporarily unavailable. Please try again shortly."
ERROR_MESSAGE = "The AI service could not process the request."

_embeddings_adapter = TypeAdapter(List[List[float]])


def is_retryable(error: Exception) -> bool:
    """Transport failures and 5xx/429 answers are worth another attempt."""
    if isinstance(error, UpstreamTimeout):
        return True
    return isinstance(error, UpstreamError) and error.retryable


class InferenceClient:
    """
    Async HTTP client for the inference service with timeout, retry,
    circuit breaking and fallback.
    """

    def __init__(
        self,
        base_url: str,
        mode: str = "parallel",
        timeout_seconds: float = 30.0,
        retry_max_attempts: int = 3,
        retry_backoff_seconds: float = 1.0,
        retry_max_backoff_seconds: float = 8.0,
        health_timeout_seconds: float = 5.0,
        analyze_timeout_seconds: float = 10.0,
        embed_timeout_seconds: float = 15.0,
        service_name: str = "Smart-RAG Chat",
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Coroutine[Any, Any, None]] = asyncio.sleep,
    ):
        """
        Initialize inference client.

        Args:
            base_url: Upstream base URL
            mode: Default processing mode sent with queries
            timeout_seconds: Bound on a whole query() call, retries included
            retry_max_attempts: Total attempts per query
            retry_backoff_seconds: First backoff delay
            retry_max_backoff_seconds: Backoff ceiling
            health_timeout_seconds: Timeout of health_check()
            analyze_timeout_seconds: Timeout of analyze_intent()
            embed_timeout_seconds: Timeout of generate_embeddings()
            service_name: Service name reported when the upstream is unreachable
            circuit_breaker: Breaker guarding query attempts (a default one if not given)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            sleep: Backoff sleep, injectable for tests
        """
        self.base_url = base_url.rstrip("/")
        self.mode = mode
        self.timeout_seconds = timeout_seconds
        self.retry_max_attempts = retry_max_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self.retry_max_backoff_seconds = retry_max_backoff_seconds
        self.health_timeout_seconds = health_timeout_seconds
        self.analyze_timeout_seconds = analyze_timeout_seconds
        self.embed_timeout_seconds = embed_timeout_seconds
        self.service_name = service_name
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self._sleep = sleep

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "InferenceClient":
        """Build a client from application settings."""
        if circuit_breaker is None:
            circuit_breaker = CircuitBreaker(
                name="inference",
                failure_rate_threshold=settings.circuit_failure_rate_threshold,
                sliding_window_size=settings.circuit_sliding_window_size,
                minimum_calls=settings.circuit_minimum_calls,
                open_wait_seconds=settings.circuit_open_wait_seconds,
                half_open_permitted_calls=settings.circuit_half_open_permitted_calls,
            )
        return cls(
            base_url=settings.inference_base_url,
            mode=settings.inference_mode,
            timeout_seconds=settings.inference_timeout_seconds,
            retry_max_attempts=settings.inference_retry_max_attempts,
            retry_backoff_seconds=settings.inference_retry_backoff_seconds,
            retry_max_backoff_seconds=settings.inference_retry_max_backoff_seconds,
            health_timeout_seconds=settings.inference_health_timeout_seconds,
            service_name=settings.inference_service_name,
            circuit_breaker=circuit_breaker,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    def fallback_response(self, request: InferenceRequest) -> InferenceResponse:
        return InferenceResponse(
            success=False,
            message=FALLBACK_MESSAGE,
            session_id=request.session_id,
            processing_time=0.0,
            mode_used="fallback",
        )

    def error_response(self, request: InferenceRequest) -> InferenceResponse:
        return InferenceResponse(
            success=False,
            message=ERROR_MESSAGE,
            session_id=request.session_id,
            processing_time=0.0,
            mode_used="error",
        )

    async def _attempt(self, request: InferenceRequest) -> InferenceResponse:
        """One guarded POST to the query endpoint."""
        breaker = self.circuit_breaker
        permit = breaker.allow_request()
        if permit is None:
            raise CircuitOpen(f"Circuit '{breaker.name}' is open")

        try:
            resp = await self._client.post(QUERY_PATH, json=request.to_payload())
        except httpx.TimeoutException as e:
            breaker.record_failure(permit)
            raise UpstreamTimeout(f"Upstream request timed out: {e}") from e
        except httpx.HTTPError as e:
            breaker.record_failure(permit)
            raise UpstreamError(f"Upstream transport error: {e}", retryable=True) from e
        except (asyncio.CancelledError, Exception):
            breaker.record_failure(permit)
            raise

        status = resp.status_code
        if status >= 500 or status == 429:
            breaker.record_failure(permit)
            raise UpstreamError(f"Upstream returned {status}", status_code=status, retryable=True)
        if status >= 400:
            # The upstream is up; the request itself was refused
            breaker.record_success(permit)
            raise UpstreamError(f"Upstream rejected request with {status}", status_code=status)

        try:
            parsed = InferenceResponse.model_validate_json(resp.content)
        except ValidationError as e:
            breaker.record_failure(permit)
            raise UpstreamError(f"Undecodable upstream response: {e}", status_code=status) from e

        breaker.record_success(permit)
        return parsed

    async def query(self, request: InferenceRequest) -> InferenceResponse:
        """
        Send a query to the inference service.

        Args:
            request: Query with optional bounded context

        Returns:
            InferenceResponse: The upstream answer, or a failure value
        """
        start_time = time.monotonic()
        logger.info(
            f"Inference request - sessionId: {request.session_id}, mode: {request.mode}"
        )

        try:
            response = await asyncio.wait_for(
                execute_with_retry(
                    lambda: self._attempt(request),
                    max_attempts=self.retry_max_attempts,
                    base_delay=self.retry_backoff_seconds,
                    max_delay=self.retry_max_backoff_seconds,
                    is_retryable=is_retryable,
                    retryable_exceptions=(UpstreamError, UpstreamTimeout),
                    sleep=self._sleep,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Inference request timed out after {self.timeout_seconds}s - "
                f"sessionId: {request.session_id}",
                extra={"extra_fields": {"session_id": request.session_id, "outcome": "timeout"}}
            )
            return self.fallback_response(request)
        except CircuitOpen as e:
            logger.warning(
                f"Inference fallback - sessionId: {request.session_id}, error: {e}",
                extra={"extra_fields": {"session_id": request.session_id, "outcome": "circuit_open"}}
            )
            return self.fallback_response(request)
        except (UpstreamError, UpstreamTimeout) as e:
            outcome = "retries_exhausted" if is_retryable(e) else "rejected"
            logger.error(
                f"Inference request failed - sessionId: {request.session_id}, error: {e}",
                extra={"extra_fields": {"session_id": request.session_id, "outcome": outcome}}
            )
            if is_retryable(e):
                return self.fallback_response(request)
            return self.error_response(request)
        except Exception as e:
            logger.error(
                f"Inference request crashed - sessionId: {request.session_id}, error: {e}",
                exc_info=True,
                extra={"extra_fields": {"session_id": request.session_id, "outcome": "unexpected"}}
            )
            return self.error_response(request)

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            f"Inference request completed - sessionId: {request.session_id}, "
            f"processingTime: {response.processing_time}s",
            extra={"extra_fields": {
                "session_id": request.session_id,
                "mode_used": response.mode_used,
                "duration_ms": round(duration_ms, 2),
            }}
        )
        return response

    def _unhealthy(self) -> UpstreamHealth:
        return UpstreamHealth(
            status="unhealthy",
            service=self.service_name,
            version="unknown",
            router_available=False,
            uptime="0",
        )

    async def health_check(self) -> UpstreamHealth:
        """
        Fetch the upstream health report.

        Returns:
            UpstreamHealth: The report, or an "unhealthy" one on any failure
        """
        try:
            resp = await asyncio.wait_for(
                self._client.get(HEALTH_PATH, timeout=self.health_timeout_seconds),
                timeout=self.health_timeout_seconds,
            )
            resp.raise_for_status()
            health = UpstreamHealth.model_validate_json(resp.content)
        except (asyncio.TimeoutError, httpx.HTTPError, ValidationError) as e:
            logger.error(f"Upstream health check failed: {e}")
            return self._unhealthy()

        logger.debug(
            f"Upstream health - status: {health.status}, "
            f"routerAvailable: {health.router_available}, uptime: {health.uptime}"
        )
        return health

    async def analyze_intent(self, text: str) -> str:
        """
        Ask the upstream to classify the intent of a text.

        Returns:
            str: The raw classification, or "unknown" on failure
        """
        try:
            resp = await asyncio.wait_for(
                self._client.post(
                    ANALYZE_PATH,
                    content=text.encode("utf-8"),
                    headers={"Content-Type": "text/plain; charset=utf-8"},
                    timeout=self.analyze_timeout_seconds,
                ),
                timeout=self.analyze_timeout_seconds,
            )
            resp.raise_for_status()
        except (asyncio.TimeoutError, httpx.HTTPError) as e:
            logger.error(f"Intent analysis failed: {e}")
            return "unknown"
        return resp.text

    async def generate_embeddings(self, texts: Sequence[str]) -> Optional[List[List[float]]]:
        """
        Request embedding vectors for a batch of texts.

        Returns:
            Optional[List[List[float]]]: One vector per text, or None on failure
        """
        try:
            resp = await asyncio.wait_for(
                self._client.post(EMBED_PATH, json=list(texts), timeout=self.embed_timeout_seconds),
                timeout=self.embed_timeout_seconds,
            )
            resp.raise_for_status()
            embeddings = _embeddings_adapter.validate_json(resp.content)
        except (asyncio.TimeoutError, httpx.HTTPError, ValidationError) as e:
            logger.error(f"Embedding generation failed: {e}")
            return None

        logger.debug(f"Embeddings generated - count: {len(embeddings)}")
        return embeddings
