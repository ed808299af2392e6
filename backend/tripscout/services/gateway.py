"""Provider gateway — the single outbound HTTP path for every provider call.

Order of operations per call: cooldown check, global pacing, request with a
fixed timeout, bounded retry on 429 with doubling delay, classification of
the final response.
"""

import logging
from typing import Any

import httpx

from tripscout.exceptions import (
    PlanRestrictedError,
    ProviderAuthError,
    ProviderUnavailableError,
    RateLimitedError,
)
from tripscout.services.pacing import PacingController

logger = logging.getLogger(__name__)

RESTRICTION_CODES = {"function_access_restricted", "usage_limit_reached", "https_access_restricted"}
RESTRICTION_PHRASES = ("subscription plan", "not subscribed", "upgrade your plan", "plan does not")
AUTH_CODES = {"invalid_access_key", "missing_access_key", "invalid_api_key", "38190"}


def _error_text(payload: Any) -> tuple[str, str]:
    """Pull (code, message) out of the error shapes providers use."""
    if not isinstance(payload, dict):
        return "", ""
    error = payload.get("error")
    if isinstance(error, dict):
        return str(error.get("code", "")), str(error.get("message") or error.get("info") or "")
    if isinstance(error, str):
        return "", error
    errors = payload.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        first = errors[0]
        return str(first.get("code", "")), str(first.get("detail") or first.get("title") or "")
    message = payload.get("message")
    if isinstance(message, str):
        return "", message
    return "", ""


def is_plan_restricted(payload: Any) -> bool:
    code, message = _error_text(payload)
    if code.lower() in RESTRICTION_CODES:
        return True
    lowered = message.lower()
    return any(phrase in lowered for phrase in RESTRICTION_PHRASES)


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def classify_response(key: str, provider: str, response: httpx.Response) -> Any:
    """Return the decoded JSON body or raise the matching taxonomy error.

    Plan restriction is detected both from 403 and from 200 bodies that carry
    a restriction error, since some providers report it in-band.
    """
    payload = _safe_json(response)
    status = response.status_code
    code, message = _error_text(payload)

    if status == 401 or code.lower() in AUTH_CODES:
        raise ProviderAuthError(provider, message or f"HTTP {status}")
    if status == 403 or is_plan_restricted(payload):
        raise PlanRestrictedError(key, message or f"HTTP {status}")
    if status >= 400:
        raise ProviderUnavailableError(key, status, message or response.text[:200])
    if payload is None:
        raise ProviderUnavailableError(key, status, "response body is not JSON")
    return payload


class ProviderGateway:
    """Shared HTTP client honouring pacing and cooldowns."""

    def __init__(
        self,
        pacing: PacingController,
        timeout: float = 15.0,
        max_retries: int = 2,
        backoff_base: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.pacing = pacing
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def send(self, key: str, method: str, url: str, **kwargs) -> httpx.Response:
        """Issue one provider call under operation key `key`.

        Every attempt, retries included, takes a pacing turn and re-checks the
        cooldown once the turn is granted.

        Raises RateLimitedError without touching the network while the key is
        cooling down, and after retries are exhausted on 429 (which also starts
        the cooldown). Raises ProviderUnavailableError on timeout/transport
        failure. Any other response is returned as-is.
        """
        if self.pacing.is_rate_limited(key):
            logger.warning(f"Skipping {key}: temporarily rate-limited")
            raise RateLimitedError(key, cooling_down=True)

        client = await self._get_client()

        for attempt in range(self.max_retries + 1):
            if attempt:
                await self.pacing.sleep(self.backoff_base * (2 ** (attempt - 1)))
            await self.pacing.wait_turn()
            if self.pacing.is_rate_limited(key):
                logger.warning(f"Skipping {key}: cooldown started while waiting for a turn")
                raise RateLimitedError(key, cooling_down=True)

            try:
                resp = await client.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                logger.warning(f"{key} timed out after {self.timeout:.0f}s: {e}")
                raise ProviderUnavailableError(key, detail="timeout") from e
            except httpx.RequestError as e:
                logger.warning(f"{key} request error: {type(e).__name__}: {e}")
                raise ProviderUnavailableError(key, detail=str(e)) from e

            if resp.status_code != 429:
                return resp
            if attempt < self.max_retries:
                delay = self.backoff_base * (2 ** attempt)
                logger.warning(f"429 Too Many Requests for {key}, retrying in {delay:.0f}s")

        self.pacing.start_cooldown(key)
        raise RateLimitedError(key)

    async def fetch_json(self, key: str, provider: str, method: str, url: str, **kwargs) -> Any:
        resp = await self.send(key, method, url, **kwargs)
        return classify_response(key, provider, resp)

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
