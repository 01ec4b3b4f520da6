from pydantic import BaseModel, Field, ConfigDict, Discriminator, Tag, field_serializer
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Literal, Union, Annotated


def parse_iso8601(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp. Naive values are treated as UTC.

    Raises:
        ValueError: If the value is not a valid ISO 8601 timestamp
    """
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso8601(value: datetime) -> str:
    """Render a datetime as millisecond-precision UTC ISO 8601 with a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CamelModel(BaseModel):
    """Base for models exchanged with the Gladly and Enterpret APIs (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Gladly (source) models ---

class Initiator(CamelModel):
    type: Optional[str] = None


class ChatMessageContent(CamelModel):
    type: Literal["CHAT_MESSAGE"] = "CHAT_MESSAGE"
    content: Optional[str] = None


class EmailContent(CamelModel):
    type: Literal["EMAIL"] = "EMAIL"
    subject: Optional[str] = None
    body_plain: Optional[str] = None
    content: Optional[str] = None


class SmsContent(CamelModel):
    type: Literal["SMS"] = "SMS"
    body: Optional[str] = None


class PhoneCallContent(CamelModel):
    type: Literal["PHONE_CALL"] = "PHONE_CALL"
    answered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ConversationNoteContent(CamelModel):
    type: Literal["CONVERSATION_NOTE"] = "CONVERSATION_NOTE"
    body: Optional[str] = None


class TopicChangeContent(CamelModel):
    type: Literal["TOPIC_CHANGE"] = "TOPIC_CHANGE"
    added_topic_ids: List[str] = Field(default_factory=list)
    removed_topic_ids: List[str] = Field(default_factory=list)


class StatusChangeContent(CamelModel):
    type: Literal["CONVERSATION_STATUS_CHANGE"] = "CONVERSATION_STATUS_CHANGE"
    status: Optional[str] = None


class CustomerActivityContent(CamelModel):
    type: Literal["CUSTOMER_ACTIVITY"] = "CUSTOMER_ACTIVITY"
    title: Optional[str] = None
    body: Optional[str] = None


class OtherContent(CamelModel):
    """Any content type without a dedicated model (social, messaging, voicemail, unknown)."""
    model_config = ConfigDict(extra="allow")

    type: str


RENDERED_CONTENT_TYPES = {
    "CHAT_MESSAGE",
    "EMAIL",
    "SMS",
    "PHONE_CALL",
    "CONVERSATION_NOTE",
    "TOPIC_CHANGE",
    "CONVERSATION_STATUS_CHANGE",
    "CUSTOMER_ACTIVITY",
}


def _content_tag(value: Any) -> str:
    if isinstance(value, dict):
        content_type = value.get("type")
    else:
        content_type = getattr(value, "type", None)
    return content_type if content_type in RENDERED_CONTENT_TYPES else "OTHER"


ItemContent = Annotated[
    Union[
        Annotated[ChatMessageContent, Tag("CHAT_MESSAGE")],
        Annotated[EmailContent, Tag("EMAIL")],
        Annotated[SmsContent, Tag("SMS")],
        Annotated[PhoneCallContent, Tag("PHONE_CALL")],
        Annotated[ConversationNoteContent, Tag("CONVERSATION_NOTE")],
        Annotated[TopicChangeContent, Tag("TOPIC_CHANGE")],
        Annotated[StatusChangeContent, Tag("CONVERSATION_STATUS_CHANGE")],
        Annotated[CustomerActivityContent, Tag("CUSTOMER_ACTIVITY")],
        Annotated[OtherContent, Tag("OTHER")],
    ],
    Discriminator(_content_tag),
]


class ConversationItem(CamelModel):
    """A single message or event inside a Gladly conversation."""
    id: Optional[str] = None
    conversation_id: Optional[str] = None
    timestamp: datetime
    initiator: Optional[Initiator] = None
    content: Optional[ItemContent] = None


class CustomAttribute(CamelModel):
    id: Optional[str] = None
    value: Optional[Any] = None


class Conversation(CamelModel):
    """Gladly conversation as returned by the listing endpoint."""
    id: str
    created_at: Optional[datetime] = None
    status: Optional[str] = None
    inbox_id: Optional[str] = None
    agent_id: Optional[str] = None
    customer_id: Optional[str] = None
    topic_ids: List[str] = Field(default_factory=list)
    custom_attributes: List[CustomAttribute] = Field(default_factory=list)


class ContactPoint(CamelModel):
    """An email address or phone number on a customer profile."""
    original: Optional[str] = None
    normalized: Optional[str] = None
    value: Optional[str] = None
    primary: bool = False

    @property
    def preferred_value(self) -> Optional[str]:
        """Normalized form first, then the raw original, then a plain value."""
        return self.normalized or self.original or self.value


class CustomerProfile(CamelModel):
    id: str
    name: Optional[str] = None
    emails: List[ContactPoint] = Field(default_factory=list)
    phones: List[ContactPoint] = Field(default_factory=list)
    external_customer_id: Optional[str] = None


# --- Enterpret (destination) models ---

class AgentRef(CamelModel):
    id: str


class FeedbackCustomer(CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    external_id: Optional[str] = None


class FeedbackRecord(CamelModel):
    """Enterpret feedback record, one per Gladly conversation."""
    id: str
    source: str
    channel: str
    timestamp: datetime
    status: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    agent: Optional[AgentRef] = None
    customer: Optional[FeedbackCustomer] = None
    tags: Optional[List[str]] = None
    content: str = ""
    custom_attributes: Optional[Dict[str, Any]] = None

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        return to_iso8601(value)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready payload; absent optional fields are omitted, never null."""
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        # Attribute values set to null by the source are kept
        if self.custom_attributes is not None:
            payload["customAttributes"] = dict(self.custom_attributes)
        return payload


# --- Pipeline bookkeeping ---

class ImportState(CamelModel):
    """Persisted marker of the last successful import."""
    last_import_time: datetime
    updated_at: datetime


class RunMetrics(BaseModel):
    """Counters for a single import run."""
    conversations_count: int = 0
    imported_count: int = 0
    items_count: int = 0
    customers_count: int = 0
    errors_count: int = 0
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    state_updated: bool = False

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()


class ConversationPage(BaseModel):
    """One page of the Gladly conversation listing."""
    conversations: List[Conversation] = Field(default_factory=list)
    has_more: bool = False
