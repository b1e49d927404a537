"""
Probe Chain
===========

EcoWitt will happily answer "success" with no data when one of the query
parameters (call_back scope, cycle type, units) doesn't suit the station.
Nobody can tell in advance which combination a station wants, so we try
them in order until one returns data.

    base params ──> empty? ──> step 1 ──> empty? ──> step 2 ──> ... ──> give up
        │                        │                     │
        └── data: done           └── data: done        └── data: done

A ProbeStep is just a set of overrides applied to a copy of the base params.
The result always says which attempts were made, so "no data" comes back
with an explanation instead of a silent empty dict.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from agritech.errors import VendorAPIError

logger = logging.getLogger(__name__)


RATE_LIMIT_CODE = -1
RATE_LIMIT_MESSAGE = "Operation too frequent"


class ProbeStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class ProbeStep:
    """
    One fallback to try.

    Args:
        name: What shows up in diagnostics ("call_back=outdoor")
        set_params: Params to add/replace
        drop_params: Params to remove
    """
    name: str
    set_params: dict = field(default_factory=dict)
    drop_params: tuple = ()

    def apply(self, base_params: dict) -> dict:
        params = dict(base_params)
        params.update(self.set_params)
        for key in self.drop_params:
            params.pop(key, None)
        return params


@dataclass
class ProbeAttempt:
    name: str
    params: dict
    outcome: str
    error: Optional[str] = None

    def to_dict(self) -> dict:
        # Credentials stay out of diagnostics
        safe_params = {k: v for k, v in self.params.items() if k not in ("application_key", "api_key")}
        result = {"strategy": self.name, "params": safe_params, "outcome": self.outcome}
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class ProbeResult:
    """
    What a probe chain came back with.

    status OK:           payload is the first response that had data
    status EMPTY:        payload is the last (empty) response, see diagnostics
    status RATE_LIMITED: payload is the rate-limit response, see diagnostics

    base_payload is always the response to the base request, whichever
    step ended up in payload.

    Transport/auth failures on the base request aren't results, they raise
    VendorAPIError.
    """
    status: ProbeStatus
    payload: dict
    attempts: list = field(default_factory=list)
    diagnostics: Optional[dict] = None
    base_payload: Optional[dict] = None

    @property
    def ok(self) -> bool:
        return self.status == ProbeStatus.OK

    @property
    def data(self) -> Any:
        return self.payload.get("data") if isinstance(self.payload, dict) else None

    @property
    def strategy(self) -> Optional[str]:
        """Name of the attempt that produced data, if any."""
        for attempt in self.attempts:
            if attempt.outcome == "data":
                return attempt.name
        return None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "strategy": self.strategy,
            "payload": self.payload,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
            "diagnostics": self.diagnostics,
        }


def is_rate_limited(response: Any) -> bool:
    return (
        isinstance(response, dict)
        and response.get("code") == RATE_LIMIT_CODE
        and response.get("msg") == RATE_LIMIT_MESSAGE
    )


def build_diagnostics(
    message: str,
    attempts: list,
    params_sent: dict,
    possible_causes: Optional[list] = None,
    **extra: Any,
) -> dict:
    """Diagnostic block attached to EMPTY / RATE_LIMITED results."""
    diagnostics = {
        "message": message,
        "strategies_tried": [attempt.name for attempt in attempts],
        "attempts": [attempt.to_dict() for attempt in attempts],
        "params_sent": {k: v for k, v in params_sent.items() if k not in ("application_key", "api_key")},
        "possible_causes": possible_causes or [],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    diagnostics.update(extra)
    return diagnostics


async def probe(
    fetch: Callable[[dict], Awaitable[dict]],
    base_params: dict,
    steps: list,
    is_empty: Callable[[dict], bool],
    exhaustive: bool = False,
    label: str = "probe",
) -> ProbeResult:
    """
    Try base_params, then each step in order, until something returns data.

    Args:
        fetch: async fn(params) -> parsed JSON. Handles its own rate-limit retry.
        base_params: The first request's params
        steps: Ordered ProbeStep fallbacks
        is_empty: Tells us whether a response counts as "no data"
        exhaustive: Run every step even after a hit (used by the diagnose endpoints)
        label: Log prefix

    Returns:
        ProbeResult (never an exception for empty/rate-limited answers)

    Raises:
        VendorAPIError: if the base request itself fails
    """
    attempts = []

    # Base request errors propagate - there's nothing to fall back from yet
    response = await fetch(base_params)

    if is_rate_limited(response):
        attempts.append(ProbeAttempt("base", base_params, "rate_limited"))
        return ProbeResult(ProbeStatus.RATE_LIMITED, response, attempts, base_payload=response)

    first_hit = None
    if is_empty(response):
        attempts.append(ProbeAttempt("base", base_params, "empty"))
    else:
        attempts.append(ProbeAttempt("base", base_params, "data"))
        if not exhaustive:
            return ProbeResult(ProbeStatus.OK, response, attempts, base_payload=response)
        first_hit = response

    last_response = response

    for step in steps:
        params = step.apply(base_params)
        logger.info(f"[{label}] Trying {step.name}")
        try:
            step_response = await fetch(params)
        except VendorAPIError as e:
            logger.warning(f"[{label}] {step.name} failed: {e.message}")
            attempts.append(ProbeAttempt(step.name, params, "error", error=e.message))
            continue

        last_response = step_response

        if is_rate_limited(step_response):
            attempts.append(ProbeAttempt(step.name, params, "rate_limited"))
            continue

        if is_empty(step_response):
            attempts.append(ProbeAttempt(step.name, params, "empty"))
            continue

        attempts.append(ProbeAttempt(step.name, params, "data"))
        if not exhaustive:
            logger.info(f"[{label}] Got data with {step.name}")
            return ProbeResult(ProbeStatus.OK, step_response, attempts, base_payload=response)
        if first_hit is None:
            first_hit = step_response

    if first_hit is not None:
        return ProbeResult(ProbeStatus.OK, first_hit, attempts, base_payload=response)

    return ProbeResult(ProbeStatus.EMPTY, last_response, attempts, base_payload=response)
