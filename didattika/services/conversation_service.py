"""Per-user conversation storage"""

import logging
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from didattika.models.conversation import (
    Conversation,
    ConversationCreate,
    ConversationListResponse,
    ConversationSearch,
    ConversationSortField,
    ConversationUpdate,
    Message,
    default_conversation_title,
)
from didattika.models.teacher import SortOrder
from didattika.services.filters import collation_key, matches_search
from didattika.services.store import InMemoryStore, RecordStore
from didattika.utils.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Conversation not found"

SORT_KEYS: Dict[ConversationSortField, Callable[[Conversation], object]] = {
    ConversationSortField.DATE: lambda conv: conv.created_at,
    ConversationSortField.UPDATED: lambda conv: conv.updated_at,
    ConversationSortField.TITLE: lambda conv: collation_key(conv.title),
    ConversationSortField.MESSAGES: lambda conv: conv.get_message_count(),
}


def matches_conversation(conv: Conversation, search: ConversationSearch) -> bool:
    """Persona match, and the query found in the title, context or any message."""
    if search.persona and conv.persona_type != search.persona:
        return False
    return matches_search(
        search.query,
        [conv.title, conv.context] + [message.content for message in conv.messages],
    )


class ConversationService:
    """Conversation CRUD scoped to the calling user"""

    def __init__(self, store: Optional[RecordStore] = None):
        self.store: RecordStore = store or InMemoryStore()

    async def list_conversations(
        self,
        owner_id: str,
        search: Optional[ConversationSearch] = None
    ) -> ConversationListResponse:
        """Most recently updated first unless ``search`` says otherwise."""
        search = search or ConversationSearch()
        conversations = await self.store.list(
            lambda conv: conv.user_id == owner_id and matches_conversation(conv, search)
        )
        conversations.sort(
            key=SORT_KEYS[ConversationSortField(search.sort_by)],
            reverse=SortOrder(search.sort_order) == SortOrder.DESC,
        )

        total = len(conversations)
        page = conversations[search.offset:search.offset + search.limit]
        return ConversationListResponse(
            conversations=page,
            total=total,
            limit=search.limit,
            offset=search.offset,
            has_more=search.offset + len(page) < total,
        )

    async def create_conversation(self, owner_id: str, payload: ConversationCreate) -> Conversation:
        if not payload.persona_type:
            raise ValidationError("Persona type is required")

        conversation = Conversation(
            user_id=owner_id,
            persona_type=payload.persona_type,
            title=payload.title or default_conversation_title(payload.persona_type),
        )
        created = await self.store.create(conversation)
        logger.info(f"Conversation created: {created.id} ({created.persona_type}) for {owner_id}")
        return created

    async def get_conversation(self, conversation_id: str, owner_id: str) -> Conversation:
        conversation = await self.store.get(conversation_id, where=lambda conv: conv.user_id == owner_id)
        if conversation is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        return conversation

    async def update_conversation(
        self,
        conversation_id: str,
        owner_id: str,
        payload: ConversationUpdate
    ) -> Conversation:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        try:
            updated = await self.store.update(
                conversation_id,
                changes,
                where=lambda conv: conv.user_id == owner_id,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid update: {e.errors()[0]['msg']}") from e

        if updated is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        return updated

    async def append_messages(
        self,
        conversation_id: str,
        owner_id: str,
        messages: List[Message]
    ) -> Conversation:
        def append(conversation: Conversation) -> Conversation:
            for message in messages:
                conversation.add_message(message)
            return conversation

        updated = await self.store.apply(
            conversation_id,
            append,
            where=lambda conv: conv.user_id == owner_id,
        )
        if updated is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        return updated

    async def delete_conversation(self, conversation_id: str, owner_id: str) -> None:
        """Physical removal."""
        removed = await self.store.delete(conversation_id, where=lambda conv: conv.user_id == owner_id)
        if not removed:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        logger.info(f"Conversation deleted: {conversation_id}")
