"""Pay-per-play session state machine.

``reduce`` is pure: it takes the current session and one event and returns the
next session plus the effects the runner must perform. It never touches the
network, the clock, or timers.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from ...application.dtos import IntentResponseDTO, VerifyResponseDTO
from ..wallet_errors import WalletErrorKind

MAX_VERIFY_RETRIES = 10
VERIFY_RETRY_DELAY_SECONDS = 2.0

TOKEN_ERROR_CODES = frozenset({"INVALID_TOKEN", "TOKEN_EXPIRED", "MISSING_TOKEN"})
ALREADY_PAID_CODES = frozenset({"TX_ALREADY_USED", "ALREADY_VERIFIED"})

CANCELLED_MESSAGE = "Payment canceled. Click the button when ready to pay."
SERVICE_UNAVAILABLE_MESSAGE = "Payment service unavailable. Please try again later."
SESSION_EXPIRED_MESSAGE = "Payment session expired. Please make a new payment."
TIMED_OUT_MESSAGE = "Verification timed out. Please try again."
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection."


class PaymentState(str, Enum):
    IDLE = "idle"
    LOADING_QUOTE = "loading_quote"
    QUOTE_READY = "quote_ready"
    AWAITING_SIGNATURE = "awaiting_signature"
    TX_PENDING = "tx_pending"
    VERIFYING = "verifying"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class FailureKind(str, Enum):
    QUOTE_FAILED = "quote_failed"
    WALLET_REJECTED = "wallet_rejected"
    SEND_FAILED = "send_failed"
    CONFIRMATION_FAILED = "confirmation_failed"
    SESSION_EXPIRED = "session_expired"
    VERIFICATION_REJECTED = "verification_rejected"
    VERIFICATION_TIMEOUT = "verification_timeout"
    NETWORK_ERROR = "network_error"


class RecoveryAction(str, Enum):
    NEW_PAYMENT = "new_payment"
    RETRY_VERIFICATION = "retry_verification"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class RetryPolicy(_Frozen):
    max_retries: int = MAX_VERIFY_RETRIES
    delay: float = VERIFY_RETRY_DELAY_SECONDS
    auto_prompt: bool = False


class PaymentSession(_Frozen):
    state: PaymentState = PaymentState.IDLE
    wallet_address: Optional[str] = None
    intent: Optional[IntentResponseDTO] = None
    tx_hash: Optional[str] = None
    verify_retries: int = 0
    is_auto_retrying: bool = False
    error: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    needs_new_payment: bool = False
    autopay_disabled: bool = False
    auto_prompt_attempted: bool = False
    callback_fired: bool = False

    @property
    def recovery_action(self) -> Optional[RecoveryAction]:
        """What a retry from ``failed`` will do; None outside ``failed``."""
        if self.state is not PaymentState.FAILED:
            return None
        if self.needs_new_payment or not (self.tx_hash and self.intent):
            return RecoveryAction.NEW_PAYMENT
        return RecoveryAction.RETRY_VERIFICATION


# Events


class WalletReady(_Frozen):
    """Wallet connected on the expected chain."""

    wallet_address: str
    autopay_disabled: bool = False


class QuoteLoaded(_Frozen):
    intent: IntentResponseDTO


class QuoteFailed(_Frozen):
    message: str
    code: Optional[str] = None


class PayRequested(_Frozen):
    now_ms: int


class TransactionSent(_Frozen):
    tx_hash: str


class TransactionSendFailed(_Frozen):
    kind: WalletErrorKind
    message: str


class TransactionConfirmed(_Frozen):
    tx_hash: str


class ConfirmationFailed(_Frozen):
    tx_hash: str
    message: str


class VerifyResponded(_Frozen):
    response: VerifyResponseDTO


class VerifyNetworkFailed(_Frozen):
    message: str


class RetryTimerFired(_Frozen):
    pass


class RetryRequested(_Frozen):
    pass


Event = Union[
    WalletReady,
    QuoteLoaded,
    QuoteFailed,
    PayRequested,
    TransactionSent,
    TransactionSendFailed,
    TransactionConfirmed,
    ConfirmationFailed,
    VerifyResponded,
    VerifyNetworkFailed,
    RetryTimerFired,
    RetryRequested,
]


# Effects


class FetchIntent(_Frozen):
    wallet_address: str


class SendTransaction(_Frozen):
    to: str
    value_wei: int


class WaitForConfirmation(_Frozen):
    tx_hash: str


class CallVerify(_Frozen):
    tx_hash: str
    token: str
    wallet_address: str


class ScheduleRetry(_Frozen):
    delay: float


class CancelRetry(_Frozen):
    pass


class NotifyConfirmed(_Frozen):
    pass


class DisableAutoPrompt(_Frozen):
    wallet_address: str


Effect = Union[
    FetchIntent,
    SendTransaction,
    WaitForConfirmation,
    CallVerify,
    ScheduleRetry,
    CancelRetry,
    NotifyConfirmed,
    DisableAutoPrompt,
]

Transition = tuple[PaymentSession, list[Effect]]


def _call_verify(session: PaymentSession) -> CallVerify:
    assert session.tx_hash and session.intent and session.wallet_address
    return CallVerify(
        tx_hash=session.tx_hash,
        token=session.intent.token,
        wallet_address=session.wallet_address,
    )


def _send(session: PaymentSession) -> Transition:
    assert session.intent is not None
    session = session.model_copy(
        update={
            "state": PaymentState.AWAITING_SIGNATURE,
            "error": None,
            "failure_kind": None,
            "verify_retries": 0,
        }
    )
    return session, [
        SendTransaction(
            to=session.intent.treasury_address,
            value_wei=int(session.intent.required_amount_wei),
        )
    ]


def _confirm(session: PaymentSession) -> Transition:
    effects: list[Effect] = [CancelRetry()]
    if not session.callback_fired:
        effects.append(NotifyConfirmed())
    session = session.model_copy(
        update={
            "state": PaymentState.CONFIRMED,
            "is_auto_retrying": False,
            "error": None,
            "failure_kind": None,
            "callback_fired": True,
        }
    )
    return session, effects


def _fail(
    session: PaymentSession,
    kind: FailureKind,
    message: str,
    *,
    needs_new_payment: bool,
) -> PaymentSession:
    return session.model_copy(
        update={
            "state": PaymentState.FAILED,
            "failure_kind": kind,
            "error": message,
            "needs_new_payment": needs_new_payment,
            "is_auto_retrying": False,
        }
    )


def _schedule_retry(session: PaymentSession, policy: RetryPolicy) -> Transition:
    session = session.model_copy(
        update={
            "verify_retries": session.verify_retries + 1,
            "is_auto_retrying": True,
        }
    )
    return session, [ScheduleRetry(delay=policy.delay)]


def _on_verify_response(
    session: PaymentSession, response: VerifyResponseDTO, policy: RetryPolicy
) -> Transition:
    if response.paid:
        return _confirm(session)
    if response.retryable and session.verify_retries < policy.max_retries:
        return _schedule_retry(session, policy)

    code = response.code
    if code in TOKEN_ERROR_CODES:
        return (
            _fail(
                session,
                FailureKind.SESSION_EXPIRED,
                SESSION_EXPIRED_MESSAGE,
                needs_new_payment=True,
            ),
            [],
        )
    if code in ALREADY_PAID_CODES:
        return _confirm(session)
    if session.verify_retries >= policy.max_retries:
        return (
            _fail(
                session,
                FailureKind.VERIFICATION_TIMEOUT,
                TIMED_OUT_MESSAGE,
                needs_new_payment=False,
            ),
            [],
        )
    return (
        _fail(
            session,
            FailureKind.VERIFICATION_REJECTED,
            response.error or "Payment verification failed",
            needs_new_payment=not response.retryable,
        ),
        [],
    )


def reduce(
    session: PaymentSession, event: Event, policy: RetryPolicy = RetryPolicy()
) -> Transition:
    """Apply ``event`` to ``session``.

    Events that do not apply to the current state (late responses, a tx hash
    that is no longer current) leave the session unchanged with no effects.
    """
    state = session.state
    unchanged: Transition = (session, [])

    if isinstance(event, WalletReady):
        if state is not PaymentState.IDLE:
            return unchanged
        session = session.model_copy(
            update={
                "state": PaymentState.LOADING_QUOTE,
                "wallet_address": event.wallet_address,
                "autopay_disabled": event.autopay_disabled,
                "intent": None,
                "tx_hash": None,
                "error": None,
                "failure_kind": None,
                "needs_new_payment": False,
            }
        )
        return session, [FetchIntent(wallet_address=event.wallet_address)]

    if isinstance(event, QuoteLoaded):
        if state is not PaymentState.LOADING_QUOTE:
            return unchanged
        session = session.model_copy(
            update={"state": PaymentState.QUOTE_READY, "intent": event.intent}
        )
        if (
            policy.auto_prompt
            and not session.autopay_disabled
            and not session.auto_prompt_attempted
        ):
            return _send(session.model_copy(update={"auto_prompt_attempted": True}))
        return session, []

    if isinstance(event, QuoteFailed):
        if state is not PaymentState.LOADING_QUOTE:
            return unchanged
        message = (
            SERVICE_UNAVAILABLE_MESSAGE
            if event.code == "CONFIG_ERROR"
            else event.message or "Failed to fetch quote"
        )
        return (
            _fail(
                session, FailureKind.QUOTE_FAILED, message, needs_new_payment=False
            ),
            [],
        )

    if isinstance(event, PayRequested):
        if state is not PaymentState.QUOTE_READY or session.intent is None:
            return unchanged
        if event.now_ms > session.intent.expires_at:
            assert session.wallet_address is not None
            session = session.model_copy(
                update={"state": PaymentState.LOADING_QUOTE, "intent": None}
            )
            return session, [FetchIntent(wallet_address=session.wallet_address)]
        return _send(session)

    if isinstance(event, TransactionSent):
        if state is not PaymentState.AWAITING_SIGNATURE:
            return unchanged
        session = session.model_copy(
            update={"state": PaymentState.TX_PENDING, "tx_hash": event.tx_hash}
        )
        return session, [WaitForConfirmation(tx_hash=event.tx_hash)]

    if isinstance(event, TransactionSendFailed):
        if state is not PaymentState.AWAITING_SIGNATURE:
            return unchanged
        if event.kind is WalletErrorKind.REJECTED:
            assert session.wallet_address is not None
            session = _fail(
                session,
                FailureKind.WALLET_REJECTED,
                CANCELLED_MESSAGE,
                needs_new_payment=True,
            ).model_copy(update={"autopay_disabled": True})
            return session, [DisableAutoPrompt(wallet_address=session.wallet_address)]
        return (
            _fail(
                session,
                FailureKind.SEND_FAILED,
                event.message or "Transaction failed",
                needs_new_payment=True,
            ),
            [],
        )

    if isinstance(event, TransactionConfirmed):
        if state is not PaymentState.TX_PENDING or event.tx_hash != session.tx_hash:
            return unchanged
        session = session.model_copy(
            update={"state": PaymentState.VERIFYING, "is_auto_retrying": False}
        )
        return session, [_call_verify(session)]

    if isinstance(event, ConfirmationFailed):
        if state is not PaymentState.TX_PENDING or event.tx_hash != session.tx_hash:
            return unchanged
        return (
            _fail(
                session,
                FailureKind.CONFIRMATION_FAILED,
                event.message or "Transaction confirmation failed",
                needs_new_payment=False,
            ),
            [],
        )

    if isinstance(event, VerifyResponded):
        if state is not PaymentState.VERIFYING:
            return unchanged
        return _on_verify_response(session, event.response, policy)

    if isinstance(event, VerifyNetworkFailed):
        if state is not PaymentState.VERIFYING:
            return unchanged
        if session.verify_retries < policy.max_retries:
            return _schedule_retry(session, policy)
        return (
            _fail(
                session,
                FailureKind.NETWORK_ERROR,
                NETWORK_ERROR_MESSAGE,
                needs_new_payment=False,
            ),
            [],
        )

    if isinstance(event, RetryTimerFired):
        if state is not PaymentState.VERIFYING or not session.is_auto_retrying:
            return unchanged
        return session, [_call_verify(session)]

    if isinstance(event, RetryRequested):
        if state is not PaymentState.FAILED:
            return unchanged
        action = session.recovery_action
        session = session.model_copy(
            update={
                "error": None,
                "failure_kind": None,
                "verify_retries": 0,
                "is_auto_retrying": False,
            }
        )
        if action is RecoveryAction.RETRY_VERIFICATION:
            session = session.model_copy(update={"state": PaymentState.VERIFYING})
            return session, [CancelRetry(), _call_verify(session)]
        session = session.model_copy(
            update={
                "state": PaymentState.IDLE,
                "tx_hash": None,
                "intent": None,
                "needs_new_payment": False,
            }
        )
        return session, [CancelRetry()]

    return unchanged
