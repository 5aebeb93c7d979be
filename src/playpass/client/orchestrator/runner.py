"""Asyncio effect runner for the pay-per-play state machine."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Union

from ...domain.errors import PaymentApiError
from ...domain.shared import PaymentGatewayProtocol, WalletProtocol
from ..preferences import AutoPromptPreferences
from ..wallet_errors import classify_wallet_error
from .state import (
    CallVerify,
    CancelRetry,
    ConfirmationFailed,
    DisableAutoPrompt,
    Effect,
    Event,
    FetchIntent,
    NotifyConfirmed,
    PaymentSession,
    PaymentState,
    PayRequested,
    QuoteFailed,
    QuoteLoaded,
    RetryPolicy,
    RetryRequested,
    RetryTimerFired,
    ScheduleRetry,
    SendTransaction,
    TransactionConfirmed,
    TransactionSendFailed,
    TransactionSent,
    VerifyNetworkFailed,
    VerifyResponded,
    WaitForConfirmation,
    WalletReady,
    reduce,
)

logger = logging.getLogger(__name__)

ConfirmedCallback = Callable[[PaymentSession], Union[None, Awaitable[None]]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class PaymentOrchestrator:
    """Runs one payment session for one wallet.

    Events are applied one at a time through ``reduce``; every effect runs as
    its own task and reports back by dispatching an event. After ``teardown``
    no event is applied and no callback fires.
    """

    def __init__(
        self,
        gateway: PaymentGatewayProtocol,
        wallet: WalletProtocol,
        *,
        preferences: Optional[AutoPromptPreferences] = None,
        on_confirmed: Optional[ConfirmedCallback] = None,
        policy: RetryPolicy = RetryPolicy(),
        clock: Callable[[], int] = _now_ms,
    ):
        self.gateway = gateway
        self.wallet = wallet
        self.preferences = preferences
        self.on_confirmed = on_confirmed
        self.policy = policy
        self._clock = clock

        self.session = PaymentSession()
        self.history: list[PaymentState] = [self.session.state]
        self._tasks: set[asyncio.Task] = set()
        self._retry_task: Optional[asyncio.Task] = None
        self._torn_down = False
        self._state_changed = asyncio.Event()

    @property
    def state(self) -> PaymentState:
        return self.session.state

    @property
    def is_torn_down(self) -> bool:
        return self._torn_down

    # Public actions

    async def start(self) -> None:
        """Announce the connected wallet; fetches the first quote."""
        await self._dispatch(await self._wallet_ready())

    async def request_payment(self) -> None:
        await self._dispatch(PayRequested(now_ms=self._clock()))

    async def retry(self) -> None:
        await self._dispatch(RetryRequested())

    async def teardown(self) -> None:
        """Cancel timers and in-flight work; later results are ignored."""
        if self._torn_down:
            return
        self._torn_down = True
        self._cancel_retry()
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._state_changed.set()
        logger.info("Payment session torn down in state %s", self.session.state.value)

    async def drain(self) -> None:
        """Wait until no effect is running or scheduled."""
        while self._tasks and not self._torn_down:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def wait_for(
        self, *states: PaymentState, timeout: Optional[float] = None
    ) -> PaymentState:
        """Wait until the session reaches one of ``states``."""

        async def _wait() -> PaymentState:
            while self.session.state not in states:
                if self._torn_down:
                    break
                self._state_changed.clear()
                await self._state_changed.wait()
            return self.session.state

        return await asyncio.wait_for(_wait(), timeout)

    # Dispatch

    async def _wallet_ready(self) -> WalletReady:
        address = self.wallet.address
        disabled = False
        if self.preferences is not None:
            disabled = await self.preferences.is_disabled(address)
        return WalletReady(wallet_address=address, autopay_disabled=disabled)

    async def _dispatch(self, event: Event) -> None:
        if self._torn_down:
            logger.debug("Dropping %s after teardown", type(event).__name__)
            return

        previous = self.session.state
        self.session, effects = reduce(self.session, event, self.policy)
        if self.session.state is not previous or any(
            isinstance(effect, ScheduleRetry) for effect in effects
        ):
            self.history.append(self.session.state)
        if self.session.state is not previous:
            logger.info(
                "Payment state %s -> %s on %s",
                previous.value,
                self.session.state.value,
                type(event).__name__,
            )
            self._state_changed.set()

        for effect in effects:
            await self._run(effect)

        # Back in idle with a known wallet: fetch a fresh quote.
        if self.session.state is PaymentState.IDLE and self.session.wallet_address:
            await self._dispatch(await self._wallet_ready())

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_retry(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            self._retry_task.cancel()
        self._retry_task = None

    async def _run(self, effect: Effect) -> None:
        if isinstance(effect, FetchIntent):
            self._spawn(self._fetch_intent(effect))
        elif isinstance(effect, SendTransaction):
            self._spawn(self._send_transaction(effect))
        elif isinstance(effect, WaitForConfirmation):
            self._spawn(self._wait_for_confirmation(effect))
        elif isinstance(effect, CallVerify):
            self._spawn(self._call_verify(effect))
        elif isinstance(effect, ScheduleRetry):
            self._cancel_retry()
            self._retry_task = self._spawn(self._retry_after(effect.delay))
        elif isinstance(effect, CancelRetry):
            self._cancel_retry()
        elif isinstance(effect, NotifyConfirmed):
            await self._notify_confirmed()
        elif isinstance(effect, DisableAutoPrompt):
            if self.preferences is not None:
                await self.preferences.disable(effect.wallet_address)

    # Effects

    async def _fetch_intent(self, effect: FetchIntent) -> None:
        try:
            intent = await self.gateway.create_intent(effect.wallet_address)
        except PaymentApiError as e:
            await self._dispatch(QuoteFailed(message=str(e), code=e.code))
            return
        except Exception as e:
            logger.exception("Failed to fetch quote")
            await self._dispatch(QuoteFailed(message=str(e) or "Failed to fetch quote"))
            return
        await self._dispatch(QuoteLoaded(intent=intent))

    async def _send_transaction(self, effect: SendTransaction) -> None:
        try:
            tx_hash = await self.wallet.send_transaction(effect.to, effect.value_wei)
        except Exception as e:
            kind = classify_wallet_error(e)
            logger.warning("Transaction send failed (%s): %s", kind.value, e)
            await self._dispatch(TransactionSendFailed(kind=kind, message=str(e)))
            return
        logger.info("Transaction sent: %s", tx_hash)
        await self._dispatch(TransactionSent(tx_hash=tx_hash))

    async def _wait_for_confirmation(self, effect: WaitForConfirmation) -> None:
        try:
            await self.wallet.wait_for_confirmation(effect.tx_hash)
        except Exception as e:
            logger.warning("Confirmation wait failed for %s: %s", effect.tx_hash, e)
            await self._dispatch(
                ConfirmationFailed(tx_hash=effect.tx_hash, message=str(e))
            )
            return
        await self._dispatch(TransactionConfirmed(tx_hash=effect.tx_hash))

    async def _call_verify(self, effect: CallVerify) -> None:
        try:
            response = await self.gateway.verify(
                effect.tx_hash, effect.token, effect.wallet_address
            )
        except PaymentApiError as e:
            logger.warning("Verify call failed: %s", e)
            await self._dispatch(VerifyNetworkFailed(message=str(e)))
            return
        except Exception as e:
            logger.exception("Verify call failed unexpectedly")
            await self._dispatch(VerifyNetworkFailed(message=str(e)))
            return
        await self._dispatch(VerifyResponded(response=response))

    async def _retry_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._retry_task = None
        await self._dispatch(RetryTimerFired())

    async def _notify_confirmed(self) -> None:
        logger.info("Payment confirmed for %s", self.session.wallet_address)
        if self.on_confirmed is None:
            return
        result = self.on_confirmed(self.session)
        if asyncio.iscoroutine(result):
            await result
