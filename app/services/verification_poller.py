"""
Client-side verification loop for payment intents.

After a purchase starts, the caller polls the intent status on a fixed
interval until it settles, the attempt budget runs out, or the caller loses
interest. Running out of attempts is reported as UNVERIFIED, never as FAILED:
the payment can still be reconciled later and should be re-checked on demand.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

from app.core.config import settings
from app.models.payment_intent import PaymentIntentStatus

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Awaitable[PaymentIntentStatus]]


class PollOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    UNVERIFIED = "unverified"
    CANCELLED = "cancelled"


@dataclass
class PollState:
    intent_id: str
    max_attempts: int
    deadline: float  # time.monotonic() value after which no new attempt starts
    attempt: int = 0
    last_status: Optional[PaymentIntentStatus] = None
    last_error: Optional[str] = None

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_attempts - self.attempt)

    def expired(self, now: float) -> bool:
        return now >= self.deadline


@dataclass
class PollResult:
    outcome: PollOutcome
    intent_id: str
    attempts: int
    last_status: Optional[PaymentIntentStatus] = None
    last_error: Optional[str] = None
    elapsed_seconds: float = field(default=0.0)


class VerificationPoller:
    def __init__(
        self,
        fetch_status: StatusFetcher,
        interval_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        timeout_seconds: Optional[float] = None
    ):
        self.fetch_status = fetch_status
        self.interval_seconds = settings.poll_interval_seconds if interval_seconds is None else interval_seconds
        self.max_attempts = settings.poll_max_attempts if max_attempts is None else max_attempts
        # None: bounded by attempts only
        self.timeout_seconds = timeout_seconds
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def _result(self, outcome: PollOutcome, state: PollState, started: float) -> PollResult:
        return PollResult(
            outcome=outcome,
            intent_id=state.intent_id,
            attempts=state.attempt,
            last_status=state.last_status,
            last_error=state.last_error,
            elapsed_seconds=time.monotonic() - started
        )

    async def _wait(self, cancel_event: Optional[asyncio.Event]) -> bool:
        """Sleep one interval. Returns True if the caller cancelled meanwhile."""
        if cancel_event is None:
            await asyncio.sleep(self.interval_seconds)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self.interval_seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def poll(self, intent_id: str, cancel_event: Optional[asyncio.Event] = None) -> PollResult:
        """
        Poll until the intent settles.

        Setting cancel_event stops the loop at the next check and returns
        CANCELLED; cancelling the task running poll() propagates CancelledError.
        Neither touches server-side state.
        """
        started = time.monotonic()
        state = PollState(
            intent_id=str(intent_id),
            max_attempts=self.max_attempts,
            deadline=started + self.timeout_seconds if self.timeout_seconds is not None else math.inf
        )

        while state.attempts_left > 0 and not state.expired(time.monotonic()):
            if cancel_event is not None and cancel_event.is_set():
                return self._result(PollOutcome.CANCELLED, state, started)

            state.attempt += 1
            try:
                status = await self.fetch_status(state.intent_id)
                state.last_status = PaymentIntentStatus(getattr(status, "value", status))
                state.last_error = None
            except (httpx.HTTPError, ValueError) as e:
                state.last_error = str(e)
                logger.warning(f"Status check {state.attempt}/{state.max_attempts} for intent {intent_id} failed: {e}")
            else:
                if state.last_status == PaymentIntentStatus.COMPLETED:
                    return self._result(PollOutcome.COMPLETED, state, started)
                if state.last_status == PaymentIntentStatus.FAILED:
                    return self._result(PollOutcome.FAILED, state, started)

            if state.attempts_left == 0:
                break
            if await self._wait(cancel_event):
                return self._result(PollOutcome.CANCELLED, state, started)

        logger.info(f"Intent {intent_id} still unverified after {state.attempt} attempt(s)")
        return self._result(PollOutcome.UNVERIFIED, state, started)


class HttpIntentStatusClient:
    """Fetches intent status from the payments API over HTTP"""

    def __init__(self, base_url: str, token: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = client
        self.timeout = timeout

    async def __call__(self, intent_id: str) -> PaymentIntentStatus:
        url = f"{self.base_url}/api/payments/intents/{intent_id}"
        headers = {"Authorization": f"Bearer {self.token}"}
        if self.client is not None:
            response = await self.client.get(url, headers=headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=headers)
        response.raise_for_status()
        body = response.json()
        status = body.get("status") if isinstance(body, dict) else None
        if status is None:
            raise ValueError(f"Intent status response has no status: {body!r}")
        return PaymentIntentStatus(status)
