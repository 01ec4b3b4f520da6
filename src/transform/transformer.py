# src/transform/transformer.py
"""
Convert Gladly conversations into Enterpret feedback records.

Everything here is pure: no I/O, no retries, and identical inputs always give
an identical record.
"""

from datetime import datetime, timezone
from functools import singledispatch
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from src.models.exceptions import TransformError
from src.models.schemas import (
    AgentRef,
    ChatMessageContent,
    ContactPoint,
    Conversation,
    ConversationItem,
    ConversationNoteContent,
    CustomAttribute,
    CustomerActivityContent,
    CustomerProfile,
    EmailContent,
    FeedbackCustomer,
    FeedbackRecord,
    PhoneCallContent,
    SmsContent,
    StatusChangeContent,
    TopicChangeContent,
    to_iso8601,
)

SOURCE_NAME = "Gladly"
RECORD_ID_PREFIX = "gladly_"
DEFAULT_CHANNEL = "other"
UNKNOWN_INITIATOR = "UNKNOWN"

CHANNEL_MAP = {
    "CHAT_MESSAGE": "chat",
    "EMAIL": "email",
    "SMS": "sms",
    "TWITTER": "social",
    "FACEBOOK_MESSENGER": "social",
    "INSTAGRAM_DIRECT": "social",
    "WHATSAPP": "messaging",
    "PHONE_CALL": "voice",
    "VOICEMAIL": "voice",
    "CUSTOMER_ACTIVITY": "other",
}


def record_id_for(conversation_id: str) -> str:
    """Destination id for a conversation; stable across re-imports."""
    return f"{RECORD_ID_PREFIX}{conversation_id}"


def transform_conversation(
    conversation: Union[Conversation, Dict[str, Any]],
    items: Sequence[ConversationItem],
    customer: Optional[CustomerProfile] = None
) -> FeedbackRecord:
    """
    Transform a Gladly conversation into an Enterpret feedback record.

    Args:
        conversation: Gladly conversation (model or raw API dict)
        items: Items of the conversation, in any order
        customer: Customer profile, if one could be fetched

    Returns:
        FeedbackRecord with absent optional fields left unset

    Raises:
        TransformError: If the conversation lacks id, createdAt or status
    """
    if isinstance(conversation, dict):
        try:
            conversation = Conversation.model_validate(conversation)
        except ValidationError as e:
            raise TransformError(conversation.get("id"), str(e)) from e

    if conversation.created_at is None:
        raise TransformError(conversation.id, "missing required field: createdAt")
    if not conversation.status:
        raise TransformError(conversation.id, "missing required field: status")

    metadata: Dict[str, Any] = {"gladly_conversation_id": conversation.id}
    if conversation.inbox_id is not None:
        metadata["inboxId"] = conversation.inbox_id

    record = FeedbackRecord(
        id=record_id_for(conversation.id),
        source=SOURCE_NAME,
        channel=determine_primary_channel(items),
        timestamp=conversation.created_at,
        status=conversation.status.lower(),
        metadata=metadata,
        content=render_content(items),
    )

    if conversation.agent_id:
        record.agent = AgentRef(id=conversation.agent_id)

    if customer is not None:
        record.customer = transform_customer(customer)

    if conversation.topic_ids:
        record.tags = list(conversation.topic_ids)

    custom_attributes = transform_custom_attributes(conversation.custom_attributes)
    if custom_attributes:
        record.custom_attributes = custom_attributes

    return record


def determine_primary_channel(items: Sequence[ConversationItem]) -> str:
    """
    Pick the channel most items belong to.

    On a tie the channel that reached the winning count first is kept.
    """
    counts: Dict[str, int] = {}
    primary_channel = DEFAULT_CHANNEL
    max_count = 0

    for item in items:
        if item.content is None:
            continue
        channel = CHANNEL_MAP.get(item.content.type, DEFAULT_CHANNEL)
        counts[channel] = counts.get(channel, 0) + 1
        if counts[channel] > max_count:
            max_count = counts[channel]
            primary_channel = channel

    return primary_channel


def transform_customer(customer: CustomerProfile) -> FeedbackCustomer:
    """Map a Gladly customer profile to the Enterpret customer shape."""
    transformed = FeedbackCustomer(id=customer.id)

    if customer.name:
        transformed.name = customer.name

    email = _pick_primary(customer.emails)
    if email is not None and email.preferred_value:
        transformed.email = email.preferred_value

    phone = _pick_primary(customer.phones)
    if phone is not None and phone.preferred_value:
        transformed.phone = phone.preferred_value

    if customer.external_customer_id:
        transformed.external_id = customer.external_customer_id

    return transformed


def transform_custom_attributes(custom_attributes: Sequence[CustomAttribute]) -> Dict[str, Any]:
    """Collapse [{id, value}] pairs into {id: value}; entries without an id or a value key are dropped."""
    return {
        attribute.id: attribute.value
        for attribute in custom_attributes
        if attribute.id and "value" in attribute.model_fields_set
    }


def render_content(items: Sequence[ConversationItem]) -> str:
    """Render items oldest first, one block per item, separated by blank lines."""
    ordered = sorted(items, key=lambda item: _as_utc(item.timestamp))
    blocks = [block for block in (render_item(item) for item in ordered) if block]
    return "\n\n".join(blocks)


def render_item(item: ConversationItem) -> Optional[str]:
    """Render a single item, or None if its content type is not rendered."""
    if item.content is None:
        return None
    initiator = item.initiator.type if item.initiator and item.initiator.type else UNKNOWN_INITIATOR
    return _render_content(item.content, to_iso8601(item.timestamp), initiator)


@singledispatch
def _render_content(content: Any, timestamp: str, initiator: str) -> Optional[str]:
    # Social, messaging, voicemail and unknown types carry no renderable text
    return None


@_render_content.register
def _(content: ChatMessageContent, timestamp: str, initiator: str) -> Optional[str]:
    return f"[{timestamp}] {initiator}: {content.content or ''}"


@_render_content.register
def _(content: EmailContent, timestamp: str, initiator: str) -> Optional[str]:
    subject = f"Subject: {content.subject}\n" if content.subject else ""
    body = content.body_plain or content.content or ""
    return f"[{timestamp}] {initiator} - EMAIL:\n{subject}{body}"


@_render_content.register
def _(content: SmsContent, timestamp: str, initiator: str) -> Optional[str]:
    return f"[{timestamp}] {initiator} - SMS: {content.body or ''}"


@_render_content.register
def _(content: PhoneCallContent, timestamp: str, initiator: str) -> Optional[str]:
    if content.answered_at and content.completed_at:
        seconds = (_as_utc(content.completed_at) - _as_utc(content.answered_at)).total_seconds()
        duration = _format_seconds(seconds)
    else:
        duration = "unknown"
    return f"[{timestamp}] {initiator} - CALL: Duration {duration}s"


@_render_content.register
def _(content: ConversationNoteContent, timestamp: str, initiator: str) -> Optional[str]:
    return f"[{timestamp}] NOTE: {content.body or ''}"


@_render_content.register
def _(content: TopicChangeContent, timestamp: str, initiator: str) -> Optional[str]:
    # Added and removed topics each get their own line
    lines = []
    if content.added_topic_ids:
        lines.append(f"[{timestamp}] TOPICS ADDED: {', '.join(content.added_topic_ids)}")
    if content.removed_topic_ids:
        lines.append(f"[{timestamp}] TOPICS REMOVED: {', '.join(content.removed_topic_ids)}")
    return "\n".join(lines) or None


@_render_content.register
def _(content: StatusChangeContent, timestamp: str, initiator: str) -> Optional[str]:
    return f"[{timestamp}] STATUS CHANGED TO: {content.status or ''}"


@_render_content.register
def _(content: CustomerActivityContent, timestamp: str, initiator: str) -> Optional[str]:
    return f"[{timestamp}] ACTIVITY: {content.title or ''}\n{content.body or ''}"


def _pick_primary(points: List[ContactPoint]) -> Optional[ContactPoint]:
    if not points:
        return None
    return next((point for point in points if point.primary), points[0])


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _format_seconds(seconds: float) -> str:
    return str(int(seconds)) if float(seconds).is_integer() else str(seconds)
