"""
Conversation-related data models
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .base import BaseDataModel, prefixed_id, utc_now
from .persona import PersonaType
from .teacher import SortOrder


class Message(BaseDataModel):
    """A single chat turn"""

    id: str = Field(default_factory=lambda: prefixed_id("msg"))
    role: str = Field(..., description="user, assistant or system")
    content: str = Field(..., description="Message text")
    timestamp: datetime = Field(default_factory=utc_now)
    agent: Optional[PersonaType] = Field(None, description="Persona that produced the message")

    @field_validator('role')
    @classmethod
    def validate_role(cls, v: str) -> str:
        valid_roles = {'user', 'assistant', 'system'}
        if v not in valid_roles:
            raise ValueError(f"Invalid role: {v}")
        return v

    @field_validator('content')
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v or len(v.strip()) == 0:
            raise ValueError("Message content must not be empty")
        return v.strip()

    def is_user_message(self) -> bool:
        return self.role == 'user'

    def is_assistant_message(self) -> bool:
        return self.role == 'assistant'


PERSONA_TITLES = {
    PersonaType.TUTOR: "Tutor",
    PersonaType.DOCENTE: "Docente",
    PersonaType.COACH: "Coach",
}


def default_conversation_title(persona: PersonaType) -> str:
    return f"Conversazione con {PERSONA_TITLES[PersonaType(persona)]}"


class Conversation(BaseDataModel):
    """Chat conversation owned by one user"""

    id: str = Field(default_factory=lambda: prefixed_id("conv"))
    user_id: str = Field(..., description="Owner")
    persona_type: PersonaType
    title: str
    context: Optional[str] = None
    messages: List[Message] = Field(default_factory=list, description="In conversation order")

    def add_message(self, message: Message) -> None:
        self.messages.append(message)
        self.update_timestamp()

    def get_message_count(self) -> int:
        return len(self.messages)

    def get_last_message(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None

    def get_recent_messages(self, count: int = 10) -> List[Message]:
        return self.messages[-count:] if count > 0 else []


class ConversationCreate(BaseModel):
    persona_type: Optional[PersonaType] = None
    title: Optional[str] = None


class ConversationUpdate(BaseModel):
    title: Optional[str] = None
    context: Optional[str] = None
    persona_type: Optional[PersonaType] = None
    messages: Optional[List[Message]] = None


class ConversationSortField(str, Enum):
    DATE = "date"
    UPDATED = "updated"
    TITLE = "title"
    MESSAGES = "messages"


class ConversationSearch(BaseModel):
    """Search, sort and paging options for a user's conversation list"""
    query: Optional[str] = None
    persona: Optional[PersonaType] = None
    sort_by: ConversationSortField = ConversationSortField.UPDATED
    sort_order: SortOrder = SortOrder.DESC
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class ConversationListResponse(BaseModel):
    conversations: List[Conversation]
    total: int
    limit: int
    offset: int
    has_more: bool


class ChatRequest(BaseModel):
    message: Optional[str] = None
    persona: PersonaType = PersonaType.TUTOR
    conversationId: Optional[str] = None
    conversationHistory: List[Message] = Field(default_factory=list)


class DocumentChatRequest(BaseModel):
    message: Optional[str] = None
    document_ids: List[str] = Field(default_factory=list)
    persona: PersonaType = PersonaType.TUTOR
    conversation_id: Optional[str] = None


class ChatResponse(BaseModel):
    message: str
    persona: PersonaType
    conversationId: Optional[str] = None
    timestamp: str
