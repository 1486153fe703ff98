"""
Chat Models

Threads, persisted conversation messages, the LLM request shapes and the
financial context snapshot handed to the assistant.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


DEFAULT_THREAD_TITLE = "New Chat"


class MessageSender(str, Enum):
    USER = "USER"
    ASSISTANT = "ASSISTANT"


class MessageType(str, Enum):
    TEXT = "TEXT"
    IMAGE = "IMAGE"
    FILE = "FILE"
    SYSTEM = "SYSTEM"
    ERROR = "ERROR"


class Feedback(str, Enum):
    LIKE = "LIKE"
    DISLIKE = "DISLIKE"


class StreamEventType(str, Enum):
    """Event names on the SSE wire."""
    TEXT = "text"
    CHAT_OUTPUT = "chat_output"
    ERROR = "error"


# =============================================================================
# THREADS & CONVERSATIONS
# =============================================================================

class ChatConversation(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    thread_id: int
    content: str
    sender: MessageSender
    message_type: MessageType = MessageType.TEXT
    is_processing: bool = False
    feedback: Optional[Feedback] = None
    comments: Optional[str] = None
    response_time_seconds: Optional[float] = None
    token_count: Optional[int] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    intermediate_steps: Optional[list[dict[str, Any]]] = None
    system_prompt: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class ChatThread(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str = DEFAULT_THREAD_TITLE
    description: Optional[str] = None
    is_active: bool = True
    is_pinned: bool = False
    last_message_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    conversations: list[ChatConversation] = Field(default_factory=list)


class ChatThreadSummary(BaseModel):
    """A thread as shown in the sidebar list."""
    id: int
    title: str
    description: Optional[str] = None
    is_pinned: bool = False
    last_message_at: Optional[datetime] = None
    created_at: datetime
    message_count: int = 0
    last_message_preview: Optional[str] = None


class ChatThreadCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(default=DEFAULT_THREAD_TITLE, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def default_title(self) -> "ChatThreadCreate":
        if not self.title:
            self.title = DEFAULT_THREAD_TITLE
        return self


class ChatThreadUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    is_pinned: Optional[bool] = None


class ConversationCreate(BaseModel):
    thread_id: int
    content: str = ""
    sender: MessageSender
    message_type: MessageType = MessageType.TEXT
    is_processing: bool = False
    system_prompt: Optional[dict[str, Any]] = None


class ConversationUpdate(BaseModel):
    content: Optional[str] = None
    message_type: Optional[MessageType] = None
    is_processing: Optional[bool] = None
    response_time_seconds: Optional[float] = Field(default=None, ge=0)
    token_count: Optional[int] = Field(default=None, ge=0)
    input_tokens: Optional[int] = Field(default=None, ge=0)
    output_tokens: Optional[int] = Field(default=None, ge=0)
    intermediate_steps: Optional[list[dict[str, Any]]] = None
    system_prompt: Optional[dict[str, Any]] = None


class DeleteAllResult(BaseModel):
    deleted_threads: int = 0
    deleted_conversations: int = 0


# =============================================================================
# LLM REQUEST SHAPES
# =============================================================================

class ChatMessage(BaseModel):
    """One message of conversation history sent to the model."""
    role: MessageSender
    content: str


class ChatSettings(BaseModel):
    """Per-request generation settings."""
    model: Optional[str] = None
    temperature: float = Field(default=1.0, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=4096, ge=1)
    top_p: float = Field(default=1.0, ge=0.0, le=1.0)
    stream: bool = True


class StreamEvent(BaseModel):
    """A decoded SSE event."""
    event: StreamEventType
    data: Any = None


class TokenCounts(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


# =============================================================================
# FINANCIAL CONTEXT
# =============================================================================

class FinancialDataRequest(BaseModel):
    start_date: date
    end_date: date
    include_incomes: bool = True
    include_expenses: bool = True

    @model_validator(mode="after")
    def validate_range(self) -> "FinancialDataRequest":
        if self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class FinancialDataSummary(BaseModel):
    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    net_amount: Decimal = Decimal("0")
    transaction_count: int = 0
    period: str
    currency: str


class FinancialContext(BaseModel):
    """The markdown snapshot injected into the financial system prompt."""
    markdown: str
    summary: FinancialDataSummary
    request: FinancialDataRequest


class DateRangePreset(BaseModel):
    label: str
    start_date: date
    end_date: date


class ChatTurn(BaseModel):
    """Outcome of one send_message round trip."""
    thread_id: int
    user_message: ChatConversation
    assistant_message: ChatConversation
    thread_title: str
    error: Optional[str] = None
