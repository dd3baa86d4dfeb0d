"""Discord interaction API client adapter."""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

import httpx

from modal_sessions.app_logging import log_event
from modal_sessions.domain.errors import (
    ChannelError,
    ChannelTimeoutError,
    CustomIdError,
    IdentifierLengthExceededError,
    RequestRejectedError,
)
from modal_sessions.domain.interactions import (
    ALREADY_ACKNOWLEDGED_CODE,
    UNKNOWN_INTERACTION_CODE,
    CallbackType,
    InteractionType,
)
from modal_sessions.domain.scope import MAX_CUSTOM_ID_LENGTH
from modal_sessions.domain.submissions import (
    EPHEMERAL_FLAG,
    FieldKind,
    ModalOpenRequest,
    ReplyMessage,
    SubmissionContext,
    SubmittedValue,
)
from modal_sessions.services.custom_id import decode_custom_id, encode_custom_id
from modal_sessions.services.validation import read_submission

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://discord.com/api/v10"
HTTP_TIMEOUT_SECONDS = 8.0
_ACK_RACE_CODES = frozenset({ALREADY_ACKNOWLEDGED_CODE, UNKNOWN_INTERACTION_CODE})


class InteractionClient(Protocol):
    """Interface for Discord interaction responses."""

    async def open_modal(self, request: ModalOpenRequest) -> None:
        """Answer an interaction by presenting a modal."""

    async def acknowledge(
        self, interaction_id: str, interaction_token: str, ephemeral: bool = True
    ) -> None:
        """Send a deferred acknowledgement for an interaction."""

    async def reply(
        self, interaction_id: str, interaction_token: str, message: ReplyMessage
    ) -> None:
        """Answer an interaction with an immediate message."""

    async def follow_up(
        self, interaction_token: str, message: ReplyMessage
    ) -> dict[str, object] | None:
        """Send a message after the interaction was acknowledged."""

    def parse_submission(self, payload: object) -> SubmissionContext | None:
        """Normalize a raw modal submit payload, or return None."""


@dataclass
class HttpxDiscordInteractionClient:
    """Discord interaction client implemented with httpx."""

    application_id: str
    http_client: httpx.AsyncClient
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = HTTP_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not self.application_id:
            raise ValueError("Discord interaction client requires an application id.")

    @classmethod
    def create(
        cls, application_id: str, api_base_url: str = DEFAULT_API_BASE_URL
    ) -> "HttpxDiscordInteractionClient":
        """Create a client with a managed httpx session."""
        return cls(
            application_id=application_id,
            http_client=httpx.AsyncClient(),
            api_base_url=api_base_url,
        )

    async def open_modal(self, request: ModalOpenRequest) -> None:
        """Present a modal using the interaction callback endpoint."""
        log_event(
            logger,
            logging.INFO,
            "open.requested",
            session_id=request.session_id,
            feature=request.feature,
            flow=request.flow,
        )
        custom_id = request.custom_id
        if custom_id is None:
            try:
                custom_id = encode_custom_id(
                    request.feature, request.flow, request.session_id
                )
            except CustomIdError as exc:
                raise IdentifierLengthExceededError(str(exc)) from exc
        if not custom_id or len(custom_id) > MAX_CUSTOM_ID_LENGTH:
            raise IdentifierLengthExceededError(
                "Modal custom id is missing or exceeds "
                f"{MAX_CUSTOM_ID_LENGTH} characters."
            )

        payload: dict[str, object] = {
            "type": CallbackType.MODAL,
            "data": {
                "custom_id": custom_id,
                "title": request.title,
                "components": request.components,
            },
        }
        try:
            await self._post_callback(
                request.interaction_id, request.interaction_token, payload
            )
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR,
                "open.failed",
                session_id=request.session_id,
                feature=request.feature,
                flow=request.flow,
                error=exc,
            )
            raise
        log_event(
            logger,
            logging.INFO,
            "open.sent",
            session_id=request.session_id,
            feature=request.feature,
            flow=request.flow,
        )

    async def acknowledge(
        self, interaction_id: str, interaction_token: str, ephemeral: bool = True
    ) -> None:
        """Send a deferred response, ignoring double-acknowledgement races."""
        payload: dict[str, object] = {
            "type": CallbackType.DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE
        }
        if ephemeral:
            payload["data"] = {"flags": EPHEMERAL_FLAG}
        try:
            await self._post_callback(interaction_id, interaction_token, payload)
        except RequestRejectedError as exc:
            if _discord_error_code(exc.body) in _ACK_RACE_CODES:
                log_event(logger, logging.WARNING, "submit.ack_race_ignored", error=exc)
                return
            log_event(logger, logging.WARNING, "submit.ack_failed", error=exc)
            raise
        except Exception as exc:
            log_event(logger, logging.WARNING, "submit.ack_failed", error=exc)
            raise
        log_event(logger, logging.INFO, "submit.ack_sent")

    async def reply(
        self, interaction_id: str, interaction_token: str, message: ReplyMessage
    ) -> None:
        """Answer an interaction with a channel message."""
        payload: dict[str, object] = {
            "type": CallbackType.CHANNEL_MESSAGE_WITH_SOURCE,
            "data": message.to_payload(),
        }
        await self._post_callback(interaction_id, interaction_token, payload)

    async def follow_up(
        self, interaction_token: str, message: ReplyMessage
    ) -> dict[str, object] | None:
        """Send a follow-up message through the interaction webhook."""
        path = f"/webhooks/{self.application_id}/{interaction_token}"
        log_path = f"/webhooks/{self.application_id}/<token>"
        try:
            return await self._post_json(
                path, message.to_payload(), log_path, params={"wait": "true"}
            )
        except Exception as exc:
            log_event(logger, logging.ERROR, "submit.followup_failed", error=exc)
            raise

    def parse_submission(self, payload: object) -> SubmissionContext | None:
        """Normalize a raw modal submit payload, or return None."""
        return parse_submission_payload(payload)

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    async def _post_callback(
        self,
        interaction_id: str,
        interaction_token: str,
        payload: dict[str, object],
    ) -> None:
        path = f"/interactions/{interaction_id}/{interaction_token}/callback"
        log_path = f"/interactions/{interaction_id}/<token>/callback"
        await self._post_json(path, payload, log_path)

    async def _post_json(
        self,
        path: str,
        payload: dict[str, object],
        log_path: str,
        params: dict[str, str] | None = None,
    ) -> dict[str, object] | None:
        url = f"{self.api_base_url.rstrip('/')}{path}"
        log_event(logger, logging.INFO, "http.post.begin", reason=f"url={log_path}")
        try:
            response = await self.http_client.post(
                url, json=payload, params=params, timeout=self.timeout_seconds
            )
        except httpx.TimeoutException as exc:
            log_event(
                logger,
                logging.ERROR,
                "http.post.failed",
                reason=f"timeout_s={self.timeout_seconds} url={log_path}",
                error=exc,
            )
            raise ChannelTimeoutError(log_path, self.timeout_seconds) from exc
        except httpx.HTTPError as exc:
            log_event(
                logger,
                logging.ERROR,
                "http.post.failed",
                reason=f"url={log_path}",
                error=exc,
            )
            raise ChannelError(f"Request to {log_path} failed: {exc}") from exc

        log_event(
            logger,
            logging.INFO,
            "http.post.response",
            reason=f"url={log_path} status={response.status_code}",
        )
        if not response.is_success:
            log_event(
                logger,
                logging.ERROR,
                "http.post.non_ok",
                reason=(
                    f"url={log_path} status={response.status_code} "
                    f"statusText={response.reason_phrase}"
                ),
                error=response.text,
            )
            raise RequestRejectedError(log_path, response.status_code, response.text)
        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            log_event(
                logger,
                logging.ERROR,
                "http.post.invalid_json",
                reason=f"url={log_path} status={response.status_code}",
                error=exc,
            )
            raise ChannelError(f"Response from {log_path} is not valid JSON") from exc


def parse_submission_payload(payload: object) -> SubmissionContext | None:
    """Normalize an untrusted modal submit payload.

    Returns None, after logging why, for anything that is not a valid modal
    submission addressed to a managed session. Never raises.
    """
    if not isinstance(payload, Mapping):
        log_event(
            logger,
            logging.WARNING,
            "submit.invalid_payload",
            reason="payload is not an object",
        )
        return None

    try:
        return _parse_mapping(payload)
    except Exception as exc:
        log_event(
            logger,
            logging.ERROR,
            "submit.parse_failed",
            reason=describe_payload_shape(payload),
            error=exc,
        )
        return None


def _parse_mapping(payload: Mapping[str, object]) -> SubmissionContext | None:
    if payload.get("type") != InteractionType.MODAL_SUBMIT:
        log_event(
            logger,
            logging.INFO,
            "submit.ignored_non_modal",
            reason=describe_payload_shape(payload),
        )
        return None

    user_id = extract_user_id(payload)
    validation, fields = read_submission(payload)
    if not validation.ok:
        log_event(
            logger,
            logging.WARNING,
            "submit.invalid_payload",
            custom_id=extract_custom_id(payload),
            user_id=user_id,
            reason=f"{validation.reason}; {describe_payload_shape(payload)}",
        )
        return None

    custom_id = extract_custom_id(payload) or ""
    if not user_id:
        log_event(
            logger,
            logging.WARNING,
            "submit.missing_user",
            custom_id=custom_id,
        )
        return None
    parsed_id = decode_custom_id(custom_id)
    if parsed_id is None:
        log_event(
            logger,
            logging.WARNING,
            "submit.invalid_custom_id",
            custom_id=custom_id,
            user_id=user_id,
        )
        return None

    resolved = _resolved_attachments(payload)
    values: dict[str, SubmittedValue] = {}
    attachments: dict[str, dict[str, object]] = {}
    for submitted in fields:
        values[submitted.custom_id] = submitted.value
        attachment_ids = submitted.value
        if submitted.kind is FieldKind.FILE_UPLOAD and isinstance(attachment_ids, list):
            for attachment_id in attachment_ids:
                attachment = resolved.get(attachment_id)
                if isinstance(attachment, Mapping):
                    attachments[attachment_id] = dict(attachment)

    log_event(
        logger,
        logging.INFO,
        "submit.parsed",
        session_id=parsed_id.session_id,
        feature=parsed_id.feature,
        flow=parsed_id.flow,
        custom_id=custom_id,
        user_id=user_id,
    )
    return SubmissionContext(
        interaction_id=str(payload.get("id") or ""),
        interaction_token=str(payload.get("token") or ""),
        custom_id=custom_id,
        user_id=user_id,
        guild_id=_optional_str(payload.get("guild_id")),
        channel_id=extract_channel_id(payload),
        values=values,
        attachments=attachments,
    )


def extract_custom_id(payload: Mapping[str, object]) -> str | None:
    """Return the custom id of a component or modal interaction."""
    data = payload.get("data")
    if not isinstance(data, Mapping):
        return None
    custom_id = data.get("custom_id")
    return custom_id if isinstance(custom_id, str) else None


def extract_user_id(payload: Mapping[str, object]) -> str | None:
    """Return the interacting user id for guild or direct interactions."""
    member = payload.get("member")
    if isinstance(member, Mapping):
        user = member.get("user")
        if isinstance(user, Mapping) and user.get("id"):
            return str(user["id"])
    user = payload.get("user")
    if isinstance(user, Mapping) and user.get("id"):
        return str(user["id"])
    return None


def extract_channel_id(payload: Mapping[str, object]) -> str | None:
    """Return the channel id from the channel object or the flat field."""
    channel = payload.get("channel")
    if isinstance(channel, Mapping) and channel.get("id"):
        return str(channel["id"])
    return _optional_str(payload.get("channel_id"))


def describe_payload_shape(payload: object) -> str:
    """Summarize a payload's structure for diagnostics without its values."""
    if not isinstance(payload, Mapping):
        return f"payload_type={type(payload).__name__}"

    root_keys = ",".join(str(key) for key in list(payload)[:12])
    data = payload.get("data")
    data_obj = data if isinstance(data, Mapping) else None
    data_keys = ",".join(str(key) for key in list(data_obj)[:12]) if data_obj else ""
    components = data_obj.get("components") if data_obj else None
    if isinstance(components, list):
        component_count = len(components)
        shapes = "|".join(_describe_component(entry) for entry in components[:6])
    else:
        component_count = -1
        shapes = ""
    return " ".join(
        [
            f"interaction_type={payload.get('type', 'missing')}",
            f"has_data={'true' if data_obj is not None else 'false'}",
            f"root_keys={root_keys or 'none'}",
            f"data_keys={data_keys or 'none'}",
            f"component_count={component_count}",
            f"component_shapes={shapes or 'none'}",
        ]
    )


def _describe_component(entry: object) -> str:
    if not isinstance(entry, Mapping):
        return "invalid"
    children = entry.get("components")
    child_count = len(children) if isinstance(children, list) else 0
    has_label_child = bool(entry.get("component"))
    return (
        f"type={entry.get('type', 'missing')} children={child_count} "
        f"hasLabelChild={str(has_label_child).lower()}"
    )


def _resolved_attachments(payload: Mapping[str, object]) -> Mapping[str, object]:
    data = payload.get("data")
    resolved = data.get("resolved") if isinstance(data, Mapping) else None
    attachments = resolved.get("attachments") if isinstance(resolved, Mapping) else None
    return attachments if isinstance(attachments, Mapping) else {}


def _discord_error_code(body: str) -> int | None:
    try:
        parsed = json.loads(body)
    except ValueError:
        return None
    code = parsed.get("code") if isinstance(parsed, dict) else None
    return code if isinstance(code, int) else None


def _optional_str(value: object) -> str | None:
    return str(value) if value else None
