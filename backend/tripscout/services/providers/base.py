"""Adapter outcome type shared by all provider adapters."""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable

from tripscout.exceptions import (
    PlanRestrictedError,
    ProviderUnavailableError,
    RateLimitedError,
)
from tripscout.schemas.options import CanonicalOption

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRoute:
    """Origin/destination after place resolution; codes may be absent."""
    origin_label: str
    destination_label: str
    origin_code: str | None = None
    destination_code: str | None = None
    travel_date: date | None = None
    travelers: int = 1

    @property
    def fully_resolved(self) -> bool:
        return bool(self.origin_code and self.destination_code)


def ensure_unique_ids(options: list[CanonicalOption]) -> list[CanonicalOption]:
    """Suffix repeated ids so they are unique within one response set."""
    seen: dict[str, int] = {}
    result = []
    for option in options:
        count = seen.get(option.id, 0)
        seen[option.id] = count + 1
        if count:
            option = option.model_copy(update={"id": f"{option.id}-{count + 1}"})
        result.append(option)
    return result


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    NO_MATCH = "no_match"
    RESTRICTED = "restricted"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class AdapterOutcome:
    status: OutcomeStatus
    options: list[CanonicalOption] = field(default_factory=list)
    detail: str = ""

    @classmethod
    def from_options(cls, options: list[CanonicalOption]) -> "AdapterOutcome":
        if options:
            return cls(OutcomeStatus.SUCCESS, options)
        return cls(OutcomeStatus.NO_MATCH)

    @property
    def needs_fallback(self) -> bool:
        """Restricted, empty, and unavailable outcomes are substituted with generated data."""
        return self.status in (
            OutcomeStatus.NO_MATCH,
            OutcomeStatus.RESTRICTED,
            OutcomeStatus.UNAVAILABLE,
        )


async def run_adapter_call(
    provider: str,
    call: Callable[[], Awaitable[list[CanonicalOption]]],
) -> AdapterOutcome:
    """Run one adapter call and map gateway errors onto an AdapterOutcome.

    ProviderAuthError (a ConfigurationError) is left to propagate.
    """
    try:
        options = await call()
    except RateLimitedError as e:
        return AdapterOutcome(OutcomeStatus.RATE_LIMITED, detail=str(e))
    except PlanRestrictedError as e:
        logger.warning(f"{provider} access restricted: {e.detail}")
        return AdapterOutcome(OutcomeStatus.RESTRICTED, detail=str(e))
    except ProviderUnavailableError as e:
        logger.warning(f"{provider} unavailable: {e}")
        return AdapterOutcome(OutcomeStatus.UNAVAILABLE, detail=str(e))
    return AdapterOutcome.from_options(ensure_unique_ids(options))


def payload_records(payload: Any, field: str = "data") -> Any:
    """The record list under `field`, or None when the body has another shape."""
    if isinstance(payload, dict):
        return payload.get(field)
    return None


def rapidapi_headers(api_key: str, host: str) -> dict[str, str]:
    return {"X-RapidAPI-Key": api_key, "X-RapidAPI-Host": host}
