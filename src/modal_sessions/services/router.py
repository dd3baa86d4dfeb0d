"""Dispatcher for interactions that belong to managed modal sessions."""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from modal_sessions.adapters.discord_interaction_client import (
    InteractionClient,
    extract_custom_id,
    extract_user_id,
)
from modal_sessions.app_logging import log_event
from modal_sessions.domain.errors import ChannelError
from modal_sessions.domain.interactions import InteractionType
from modal_sessions.domain.sessions import ModalSession, SessionStatus, is_expired
from modal_sessions.domain.submissions import (
    AcceptedSubmission,
    ModalOpenRequest,
    ReplyMessage,
    SessionOpenRequest,
)
from modal_sessions.services.custom_id import (
    ParsedCustomId,
    decode_custom_id,
    encode_custom_id,
    is_protocol_custom_id,
)
from modal_sessions.services.feature_gate import FeatureGate
from modal_sessions.services.sessions import SessionService, generate_session_id
from modal_sessions.services.validation import validate_submission

logger = logging.getLogger(__name__)

NOT_WIRED_MESSAGE = (
    "This modal flow is reserved for direct API routing and is not wired yet."
)
INVALID_SUBMISSION_MESSAGE = (
    "Your modal submission payload was invalid. Please reopen the flow and try again."
)
SESSION_NOT_FOUND_MESSAGE = (
    "This modal session was not found. Please reopen the flow and try again."
)
OWNER_MISMATCH_MESSAGE = (
    "This modal belongs to a different user. Please start your own modal flow."
)
SESSION_EXPIRED_MESSAGE = (
    "This modal session expired. Please reopen the flow to continue."
)
SESSION_NOT_ACTIVE_MESSAGE = (
    "This modal session is no longer active. Please reopen the flow to continue."
)
CLAIM_FAILED_MESSAGE = (
    "This modal was already submitted or expired. Please reopen the flow."
)
ACCEPTED_MESSAGE = "Modal submission accepted for this session."
UNEXPECTED_ERROR_MESSAGE = (
    "Something went wrong processing this modal. Please reopen the flow and try again."
)

_ROUTED_TYPES = frozenset(
    {InteractionType.MESSAGE_COMPONENT, InteractionType.MODAL_SUBMIT}
)


class SubmissionHandler(Protocol):
    """Business flow invoked once a submission wins its session claim."""

    async def handle(self, accepted: AcceptedSubmission) -> ReplyMessage | None:
        """Process the accepted submission and return the reply to send."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionRouter:
    """Routes modal interactions through validation, ownership and claim."""

    session_service: SessionService
    interaction_client: InteractionClient
    feature_gate: FeatureGate
    clock: Callable[[], datetime] = _utcnow
    handlers: dict[tuple[str, str], SubmissionHandler] = field(default_factory=dict)

    def register(self, feature: str, flow: str, handler: SubmissionHandler) -> None:
        """Register the business flow for a feature and flow pair."""
        key = (feature, flow)
        if key in self.handlers:
            raise ValueError(f"Handler already registered for {feature}/{flow}")
        self.handlers[key] = handler

    async def open(self, request: SessionOpenRequest) -> ModalSession:
        """Create a session and present its modal to the owner."""
        session_id = request.session_id or generate_session_id()
        custom_id = encode_custom_id(request.feature, request.flow, session_id)
        session = self.session_service.start_session(
            feature=request.feature,
            flow=request.flow,
            owner_user_id=request.owner_user_id,
            state_json=request.state_json,
            now=self.clock(),
            guild_id=request.guild_id,
            channel_id=request.channel_id,
            session_id=session_id,
            ttl_minutes=request.ttl_minutes,
        )
        try:
            await self.interaction_client.open_modal(
                ModalOpenRequest(
                    interaction_id=request.interaction_id,
                    interaction_token=request.interaction_token,
                    feature=request.feature,
                    flow=request.flow,
                    session_id=session.session_id,
                    title=request.title,
                    components=request.components,
                    custom_id=custom_id,
                )
            )
        except ChannelError:
            self.session_service.expire_session(session.session_id)
            raise
        return session

    async def route(self, payload: object) -> bool:
        """Handle the interaction if it belongs to a managed modal session.

        Returns False when the interaction should fall through to other
        handlers. Once True is returned the user has received a response.
        """
        if not isinstance(payload, Mapping):
            return False
        interaction_type = payload.get("type")
        if (
            not isinstance(interaction_type, int)
            or interaction_type not in _ROUTED_TYPES
        ):
            return False
        custom_id = extract_custom_id(payload)
        if not is_protocol_custom_id(custom_id):
            return False

        user_id = extract_user_id(payload)
        parsed = decode_custom_id(custom_id)
        if parsed is None:
            log_event(
                logger,
                logging.WARNING,
                "dispatch.invalid_custom_id",
                custom_id=custom_id,
                user_id=user_id,
            )
            await self._reply(payload, NOT_WIRED_MESSAGE)
            return True

        guild_id = payload.get("guild_id")
        if not self.feature_gate.is_enabled(
            parsed.feature, str(guild_id) if guild_id else None
        ):
            log_event(
                logger,
                logging.INFO,
                "dispatch.skipped_by_flag",
                session_id=parsed.session_id,
                feature=parsed.feature,
                flow=parsed.flow,
                user_id=user_id,
                custom_id=custom_id,
                reason="pilot_disabled_or_guild_not_allowed",
            )
            return False

        if interaction_type != InteractionType.MODAL_SUBMIT:
            log_event(
                logger,
                logging.INFO,
                "dispatch.non_submit",
                session_id=parsed.session_id,
                user_id=user_id,
                custom_id=custom_id,
            )
            await self._reply(payload, NOT_WIRED_MESSAGE)
            return True

        try:
            await self._handle_submit(payload, parsed, user_id)
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR,
                "submit.error",
                session_id=parsed.session_id,
                user_id=user_id,
                error=exc,
            )
            await self._follow_up(payload, UNEXPECTED_ERROR_MESSAGE)
        return True

    async def _handle_submit(  # noqa: PLR0911
        self,
        payload: Mapping[str, object],
        parsed: ParsedCustomId,
        user_id: str | None,
    ) -> None:
        session_id = parsed.session_id
        log_event(
            logger,
            logging.INFO,
            "submit.received",
            session_id=session_id,
            user_id=user_id,
            custom_id=extract_custom_id(payload),
        )
        await self.interaction_client.acknowledge(
            str(payload.get("id") or ""), str(payload.get("token") or "")
        )

        validation = validate_submission(payload)
        submission = (
            self.interaction_client.parse_submission(payload)
            if validation.ok
            else None
        )
        if submission is None:
            log_event(
                logger,
                logging.WARNING,
                "submit.invalid_payload",
                session_id=session_id,
                user_id=user_id,
                reason=validation.reason or "submission could not be parsed",
            )
            await self._follow_up(payload, INVALID_SUBMISSION_MESSAGE)
            return

        session = self.session_service.get_session(session_id)
        if session is None:
            log_event(
                logger,
                logging.WARNING,
                "submit.session_missing",
                session_id=session_id,
                user_id=submission.user_id,
            )
            await self._follow_up(payload, SESSION_NOT_FOUND_MESSAGE)
            return

        if session.owner_user_id != submission.user_id:
            log_event(
                logger,
                logging.WARNING,
                "submit.owner_mismatch",
                session_id=session_id,
                user_id=submission.user_id,
            )
            await self._follow_up(payload, OWNER_MISMATCH_MESSAGE)
            return

        if session.status is not SessionStatus.OPEN:
            log_event(
                logger,
                logging.WARNING,
                "submit.session_not_open",
                session_id=session_id,
                user_id=submission.user_id,
                reason=session.status.value,
            )
            await self._follow_up(payload, SESSION_NOT_ACTIVE_MESSAGE)
            return

        now = self.clock()
        if is_expired(session, now):
            self.session_service.expire_session(session_id)
            log_event(
                logger,
                logging.WARNING,
                "submit.session_expired",
                session_id=session_id,
                user_id=submission.user_id,
            )
            await self._follow_up(payload, SESSION_EXPIRED_MESSAGE)
            return

        claimed = self.session_service.claim_for_submit(
            session_id, submission.user_id, now
        )
        if not claimed:
            log_event(
                logger,
                logging.WARNING,
                "submit.claim_failed",
                session_id=session_id,
                user_id=submission.user_id,
            )
            await self._follow_up(payload, CLAIM_FAILED_MESSAGE)
            return

        log_event(
            logger,
            logging.INFO,
            "submit.accepted",
            session_id=session_id,
            feature=session.feature,
            flow=session.flow,
            user_id=submission.user_id,
        )
        reply: ReplyMessage | None = None
        handler = self.handlers.get((session.feature, session.flow))
        if handler is not None:
            reply = await handler.handle(
                AcceptedSubmission(
                    feature=session.feature,
                    flow=session.flow,
                    session_id=session_id,
                    state_json=session.state_json,
                    submission=submission,
                )
            )
        await self._send_follow_up(payload, reply or ReplyMessage(ACCEPTED_MESSAGE))

    async def _reply(self, payload: Mapping[str, object], content: str) -> None:
        try:
            await self.interaction_client.reply(
                str(payload.get("id") or ""),
                str(payload.get("token") or ""),
                ReplyMessage(content),
            )
        except ChannelError as exc:
            log_event(logger, logging.ERROR, "dispatch.reply_failed", error=exc)

    async def _follow_up(self, payload: Mapping[str, object], content: str) -> None:
        try:
            await self._send_follow_up(payload, ReplyMessage(content))
        except ChannelError as exc:
            log_event(logger, logging.ERROR, "submit.reply_failed", error=exc)

    async def _send_follow_up(
        self, payload: Mapping[str, object], message: ReplyMessage
    ) -> None:
        await self.interaction_client.follow_up(
            str(payload.get("token") or ""), message
        )
