"""
OTP verification controller.

Drives one verification at a time: request a code for an identifier and
purpose, verify what the user typed with a bounded number of attempts inside
an expiry window, and resend when the window is spent.

Success is idempotent. Once verified, further verify() calls return success
without touching the network. For login and registration the issued tokens
are handed to the session manager, and exactly one delayed close is
scheduled.

Responses that arrive after close() or a new open() are dropped: every
network call captures the controller generation and compares it when the
response arrives.
"""

import logging
from datetime import timedelta
from typing import Callable, Optional

from shared.models import Clock, mask_identifier, utc_now
from shared.scheduler import DelayedCall
from modules.session.interfaces import ISessionManager
from modules.session.models import SessionSuccess

from .exceptions import OTPNetworkError
from .interfaces import IOTPClient
from .models import (
    SESSION_PURPOSES,
    OTPErrorKind,
    OTPFailure,
    OTPPhase,
    OTPResult,
    OTPSession,
    OTPState,
    OTPSuccess,
    OTPVerifyResponse,
    describe_purpose,
)

logger = logging.getLogger(__name__)


class OTPVerificationController:
    """
    OTP request/verify/resend/expire state machine.

    Args:
        client: The remote OTP service.
        session_manager: Receives the issued tokens after a login or
            registration verification. Optional.
        expiry_seconds: Lifetime of a requested code.
        max_attempts: Failed verifications allowed per code.
        code_length: Number of digits in a code.
        close_delay_seconds: Delay between a successful verification and the
            close action.
        on_close: Called once when the controller closes.
        clock: Source of the current time.
    """

    def __init__(
        self,
        client: IOTPClient,
        session_manager: Optional[ISessionManager] = None,
        expiry_seconds: int = 300,
        max_attempts: int = 3,
        code_length: int = 6,
        close_delay_seconds: float = 1.5,
        on_close: Optional[Callable[[], object]] = None,
        clock: Clock = utc_now,
    ):
        self._client = client
        self._session_manager = session_manager
        self._expiry = timedelta(seconds=expiry_seconds)
        self._max_attempts = max_attempts
        self._code_length = code_length
        self._close_delay = close_delay_seconds
        self._on_close = on_close
        self._clock = clock

        self._session: Optional[OTPSession] = None
        self._phase = OTPPhase.IDLE
        self._requesting = False
        self._verifying = False
        self._generation = 0

        self._expiry_timer = DelayedCall("otp-expiry", self.expire)
        self._close_timer = DelayedCall("otp-close", self.close)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> OTPPhase:
        return self._phase

    @property
    def session(self) -> Optional[OTPSession]:
        return self._session

    @property
    def remaining_attempts(self) -> int:
        return self._session.remaining_attempts if self._session else 0

    @property
    def entered_code(self) -> str:
        return self._session.entered_code if self._session else ""

    @property
    def is_verified(self) -> bool:
        return self._session is not None and self._session.verified

    def seconds_remaining(self) -> Optional[int]:
        """Whole seconds left in the code window, or None if no code is out."""
        if self._session is None or self._session.expires_at is None:
            return None
        left = (self._session.expires_at - self._clock()).total_seconds()
        return max(0, int(left))

    def get_state(self) -> OTPState:
        session = self._session
        return OTPState(
            phase=self._phase,
            identifier=mask_identifier(session.identifier) if session else None,
            purpose=session.purpose if session else None,
            purpose_text=describe_purpose(session.purpose) if session else None,
            remaining_attempts=self.remaining_attempts,
            seconds_remaining=self.seconds_remaining(),
            verified=self.is_verified,
            is_requesting=self._requesting,
            is_verifying=self._verifying,
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def open(
        self,
        identifier: str,
        purpose: str,
        auto_request: bool = True,
    ) -> OTPResult:
        """
        Start a fresh verification for an identifier and purpose.

        Any previous session is dropped, including late responses to its
        calls. With auto_request a code is requested immediately.
        """
        self._reset()
        self._session = OTPSession(
            identifier=identifier or "",
            purpose=purpose,
            remaining_attempts=self._max_attempts,
        )
        logger.info(
            "OTP flow opened for %s (%s)", mask_identifier(identifier), purpose
        )
        if auto_request:
            return await self.request()
        return OTPSuccess(message=f"Verify your code to {describe_purpose(purpose)}")

    async def request(
        self,
        identifier: Optional[str] = None,
        purpose: Optional[str] = None,
    ) -> OTPResult:
        """
        Request a code from the OTP service.

        Success opens a new expiry window and restores the full attempt count.
        A failed request surfaces the server message and consumes no attempt.
        """
        if self._phase == OTPPhase.CLOSED:
            return self._closed()
        if self._requesting:
            logger.warning("OTP request already in progress")
            return OTPFailure(
                error=OTPErrorKind.REQUEST_IN_PROGRESS,
                message="A code request is already in progress",
            )
        if self._verifying:
            return OTPFailure(
                error=OTPErrorKind.VERIFICATION_IN_PROGRESS,
                message="Verification already in progress",
            )

        current = self._session
        identifier = identifier or (current.identifier if current else "")
        purpose = purpose or (current.purpose if current else "verification")
        if not identifier or not identifier.strip():
            logger.error("No identifier provided for OTP request")
            return OTPFailure(
                error=OTPErrorKind.EMPTY_IDENTIFIER,
                message="Phone number is required",
            )

        self._expiry_timer.cancel()
        self._session = OTPSession(
            identifier=identifier,
            purpose=purpose,
            remaining_attempts=self._max_attempts,
        )
        self._phase = OTPPhase.REQUESTING
        self._requesting = True
        generation = self._generation
        logger.info("Requesting OTP for %s (%s)", mask_identifier(identifier), purpose)

        try:
            response = await self._client.request_otp(identifier, purpose)
        except OTPNetworkError as e:
            if generation != self._generation:
                return self._discarded()
            logger.error("Network error during OTP request: %s", e.message)
            self._phase = OTPPhase.IDLE
            return OTPFailure(
                error=OTPErrorKind.NETWORK_ERROR,
                message="Network error. Please check your connection and try again.",
            )
        finally:
            if generation == self._generation:
                self._requesting = False

        if generation != self._generation:
            return self._discarded()

        if not response.success:
            logger.warning("OTP request refused: %s", response.message)
            self._phase = OTPPhase.IDLE
            return OTPFailure(
                error=OTPErrorKind.REJECTED,
                message=response.message or "Failed to send OTP",
            )

        now = self._clock()
        self._session.requested_at = now
        self._session.expires_at = now + self._expiry
        self._phase = OTPPhase.REQUESTED
        self._expiry_timer.schedule(self._expiry.total_seconds())
        logger.info("OTP sent to %s", mask_identifier(identifier))
        return OTPSuccess(
            message=response.message or "OTP sent successfully to your phone",
            expires_at=self._session.expires_at,
        )

    async def verify(self, code: str) -> OTPResult:
        """
        Verify an entered code.

        Rejections are local (no network call) for a malformed code, a
        concurrent verification, an expired window or spent attempts. A server
        rejection consumes one attempt and clears the entered code.
        """
        if self._phase == OTPPhase.CLOSED:
            return self._closed()

        session = self._session
        if session is not None and session.verified:
            logger.debug("OTP already verified, skipping server call")
            return OTPSuccess(message="Already verified", already_verified=True)

        if self._verifying:
            logger.warning("OTP verification already in progress")
            return OTPFailure(
                error=OTPErrorKind.VERIFICATION_IN_PROGRESS,
                message="Verification already in progress",
            )

        code = (code or "").strip()
        if len(code) != self._code_length or not code.isdigit():
            return OTPFailure(
                error=OTPErrorKind.INVALID_FORMAT,
                message=f"Please enter a valid {self._code_length}-digit OTP",
            )

        if session is None or session.requested_at is None:
            return OTPFailure(
                error=OTPErrorKind.NOT_REQUESTED,
                message="Request a code first",
            )

        if self._phase == OTPPhase.EXPIRED or self._clock() >= session.expires_at:
            self.expire()
            return OTPFailure(
                error=OTPErrorKind.EXPIRED,
                message="OTP has expired. Please request a new one.",
                remaining_attempts=session.remaining_attempts,
            )

        if session.remaining_attempts <= 0:
            return OTPFailure(
                error=OTPErrorKind.ATTEMPTS_EXHAUSTED,
                message="No attempts remaining. Please request a new code.",
                remaining_attempts=0,
            )

        session.entered_code = code
        self._verifying = True
        self._phase = OTPPhase.VERIFYING
        generation = self._generation

        try:
            response = await self._client.verify_otp(
                session.identifier, code, session.purpose
            )
        except OTPNetworkError as e:
            if generation != self._generation:
                return self._discarded()
            logger.error("Network error during OTP verification: %s", e.message)
            self._phase = OTPPhase.REQUESTED
            return OTPFailure(
                error=OTPErrorKind.NETWORK_ERROR,
                message="Network error. Please check your connection and try again.",
                remaining_attempts=session.remaining_attempts,
            )
        finally:
            if generation == self._generation:
                self._verifying = False

        if generation != self._generation:
            return self._discarded()

        if not response.success:
            return self._record_rejection(session, response)
        return await self._complete(session, response)

    async def resend(self) -> OTPResult:
        """Request a new code for the current identifier with a full attempt count."""
        if self._phase == OTPPhase.CLOSED:
            return self._closed()
        if self.is_verified or self._requesting or self._verifying:
            logger.warning("Cannot resend OTP: already verified or a call is in flight")
            return OTPFailure(
                error=OTPErrorKind.RESEND_NOT_ALLOWED,
                message="Cannot resend a code right now",
            )
        if self._session is None:
            return OTPFailure(
                error=OTPErrorKind.EMPTY_IDENTIFIER,
                message="Phone number is required",
            )
        logger.info("Resending OTP to %s", mask_identifier(self._session.identifier))
        return await self.request(self._session.identifier, self._session.purpose)

    def expire(self) -> bool:
        """
        Close the code window.

        Returns True if the window was open and is now expired. A verified or
        closed session is left alone.
        """
        session = self._session
        if (
            session is None
            or session.verified
            or session.requested_at is None
            or self._phase in (OTPPhase.EXPIRED, OTPPhase.CLOSED)
        ):
            return False
        self._expiry_timer.cancel()
        self._phase = OTPPhase.EXPIRED
        session.entered_code = ""
        logger.info("OTP for %s expired", mask_identifier(session.identifier))
        return True

    def close(self) -> None:
        """
        Tear down the flow.

        Cancels both timers and discards any response still in flight. The
        on_close callback runs once, whether the close came from the user or
        from the delay after a successful verification.
        """
        if self._phase == OTPPhase.CLOSED:
            return
        self._reset()
        self._phase = OTPPhase.CLOSED
        logger.debug("OTP flow closed")
        if self._on_close is not None:
            self._on_close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _record_rejection(
        self, session: OTPSession, response: OTPVerifyResponse
    ) -> OTPFailure:
        remaining = max(0, session.remaining_attempts - 1)
        if response.remaining_attempts is not None:
            remaining = min(remaining, max(0, response.remaining_attempts))
        session.remaining_attempts = remaining
        session.entered_code = ""

        if remaining == 0:
            self._phase = OTPPhase.FAILED
            logger.warning(
                "OTP attempts exhausted for %s", mask_identifier(session.identifier)
            )
        else:
            self._phase = OTPPhase.REQUESTED

        message = response.message or "OTP verification failed"
        return OTPFailure(
            error=OTPErrorKind.REJECTED,
            message=f"{message} ({remaining} attempts remaining)",
            remaining_attempts=remaining,
        )

    async def _complete(
        self, session: OTPSession, response: OTPVerifyResponse
    ) -> OTPSuccess:
        session.verified = True
        self._phase = OTPPhase.VERIFIED
        self._expiry_timer.cancel()
        logger.info("OTP verified for %s", mask_identifier(session.identifier))

        established = False
        moved_on = False
        if (
            self._session_manager is not None
            and session.purpose in SESSION_PURPOSES
            and response.tokens is not None
            and response.tokens.access_token
            and response.user
        ):
            generation = self._generation
            result = await self._session_manager.login(response.user, response.tokens)
            established = isinstance(result, SessionSuccess)
            if not established:
                logger.warning("Session could not be established: %s", result.message)
            if generation != self._generation:
                # Closed while the session was being stored; nothing left to close.
                moved_on = True

        if not moved_on and not self._close_timer.pending:
            self._close_timer.schedule(self._close_delay)

        return OTPSuccess(
            message=response.message or "Phone number verified successfully!",
            session_established=established,
            data=response.data,
        )

    def _reset(self) -> None:
        self._generation += 1
        self._expiry_timer.cancel()
        self._close_timer.cancel()
        self._requesting = False
        self._verifying = False
        self._session = None
        self._phase = OTPPhase.IDLE

    @staticmethod
    def _closed() -> OTPFailure:
        return OTPFailure(error=OTPErrorKind.CLOSED, message="Verification was closed")

    @staticmethod
    def _discarded() -> OTPFailure:
        logger.debug("Discarding OTP response for a flow that has moved on")
        return OTPFailure(
            error=OTPErrorKind.CLOSED,
            message="Verification was closed while the request was in flight",
        )
