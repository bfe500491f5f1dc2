"""
Tests for persona chat, response generators and conversations.
"""
import asyncio
import random
from types import SimpleNamespace

import pytest
from pydantic import ValidationError as PydanticValidationError

from didattika.models import ChatRequest, ConversationCreate, ConversationUpdate, DocumentCreate, Message, PersonaType
from didattika.models.conversation import ConversationSearch, DocumentChatRequest
from didattika.services.chat_service import (
    AI_UNAVAILABLE_MESSAGE,
    ChatService,
    DocumentContext,
    OpenAIResponseGenerator,
    ResponseGenerator,
    RESPONSE_TEMPLATES,
    TemplateResponseGenerator,
    classify_document_request,
    classify_message,
)
from didattika.services.conversation_service import ConversationService
from didattika.services.document_service import DocumentService
from didattika.utils.exceptions import AIGenerationError, NotFoundError, ValidationError


class FailingGenerator(ResponseGenerator):
    async def generate(self, message, persona, history, documents=None):
        raise RuntimeError("model offline")


class SlowGenerator(ResponseGenerator):
    async def generate(self, message, persona, history, documents=None):
        await asyncio.sleep(1)
        return "too late"


@pytest.fixture
def generator():
    return TemplateResponseGenerator(delay_min=0, delay_max=0, rng=random.Random(7))


@pytest.fixture
def services(tmp_path, generator):
    documents = DocumentService(upload_dir=str(tmp_path), processing_delay=0)
    conversations = ConversationService()
    chat = ChatService(generator, documents, conversations)
    return SimpleNamespace(documents=documents, conversations=conversations, chat=chat)


class TestClassification:
    """Keyword routing"""

    def test_tutor_categories(self):
        assert classify_message("Non capisco la MATEMATICA", PersonaType.TUTOR) == "math"
        assert classify_message("Domanda di fisica", PersonaType.TUTOR) == "science"
        assert classify_message("Ciao!", PersonaType.TUTOR) == "greetings"
        assert classify_message("Boh", PersonaType.TUTOR) == "general"

    def test_docente_categories(self):
        assert classify_message("Come preparo una verifica?", "docente") == "assessment"
        assert classify_message("Uso la LIM in classe", "docente") == "technology"

    def test_coach_categories(self):
        assert classify_message("Mi sento demotivato", "coach") == "motivation"
        assert classify_message("Non ho tempo", "coach") == "time_management"

    def test_document_request(self):
        assert classify_document_request("Riassumi il documento") == "summary"
        assert classify_document_request("Spiegami i punti principali") == "explanation"
        assert classify_document_request("Cosa ne pensi?") == "general"


class TestTemplateGenerator:
    """Canned replies"""

    def test_reply_comes_from_category_templates(self, generator):
        reply = asyncio.run(generator.generate("Aiutami con l'algebra e la matematica", PersonaType.TUTOR, []))
        assert reply in RESPONSE_TEMPLATES[PersonaType.TUTOR]["math"]

    def test_summary_mentions_every_document(self, generator):
        documents = [
            DocumentContext(title="Calcolo", summary="Derivate.", file_type="pdf"),
            DocumentContext(title="Storia", summary="Guerre.", file_type="txt"),
        ]
        reply = asyncio.run(generator.generate("Riassumi", PersonaType.COACH, [], documents))

        assert "Calcolo" in reply
        assert "Storia" in reply
        assert "Riassunto" in reply

    def test_explanation_uses_first_document(self, generator):
        documents = [DocumentContext(title="Calcolo", summary="Derivate.", file_type="pdf")]
        reply = asyncio.run(generator.generate("Spiegami le derivate", PersonaType.TUTOR, [], documents))
        assert 'documento "Calcolo"' in reply

    def test_general_document_reply_lists_references(self, generator):
        documents = [DocumentContext(title="Calcolo", summary="Derivate.", file_type="pdf")]
        reply = asyncio.run(generator.generate("Cosa ne pensi?", PersonaType.DOCENTE, [], documents))
        assert "**Calcolo**" in reply

    def test_document_context_truncation(self):
        from didattika.models import Document

        doc = Document(user_id="u1", title="Lungo", file_type="txt", file_size=10, content_text="x" * 50)
        context = DocumentContext.from_document(doc, 20)

        assert context.content_preview == "x" * 20
        assert context.truncated

    def test_document_context_at_limit_is_not_truncated(self):
        from didattika.models import Document

        doc = Document(user_id="u1", title="Giusto", file_type="txt", file_size=10, content_text="x" * 20)
        context = DocumentContext.from_document(doc, 20)

        assert context.content_preview == "x" * 20
        assert context.truncated is False


class TestOpenAIGenerator:
    """Client configuration"""

    def test_missing_key(self):
        generator = OpenAIResponseGenerator(api_key=None)
        generator.api_key = None
        with pytest.raises(ValueError):
            asyncio.run(generator.generate("Ciao", PersonaType.TUTOR, []))

    def test_messages_sent_to_client(self):
        captured = {}

        class FakeCompletions:
            async def create(self, **kwargs):
                captured.update(kwargs)
                choice = SimpleNamespace(message=SimpleNamespace(content="  Risposta  "))
                return SimpleNamespace(choices=[choice])

        generator = OpenAIResponseGenerator(api_key="test-key", model_name="test-model")
        generator.client = SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions()))

        history = [Message(role="user", content=f"m{i}") for i in range(7)]
        reply = asyncio.run(generator.generate("Ciao", PersonaType.TUTOR, history))

        assert reply == "Risposta"
        assert captured["model"] == "test-model"
        messages = captured["messages"]
        assert messages[0]["role"] == "system"
        assert [m["content"] for m in messages[1:-1]] == ["m2", "m3", "m4", "m5", "m6"]
        assert messages[-1] == {"role": "user", "content": "Ciao"}


class TestChatService:
    """Validation, failures and conversation recording"""

    def test_message_required(self, services):
        for message in (None, "", "   "):
            with pytest.raises(ValidationError) as exc_info:
                asyncio.run(services.chat.chat("u1", ChatRequest(message=message)))
            assert exc_info.value.message == "Message is required"

    def test_message_too_long(self, services):
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(services.chat.chat("u1", ChatRequest(message="a" * 1001)))
        assert "1000 characters" in exc_info.value.message

    def test_chat_reply(self, services):
        response = asyncio.run(services.chat.chat("u1", ChatRequest(message="Ciao", persona="coach")))

        assert response.persona == PersonaType.COACH
        assert response.message
        assert response.timestamp

    def test_generator_failure(self, services):
        chat = ChatService(FailingGenerator(), services.documents, services.conversations)
        with pytest.raises(AIGenerationError) as exc_info:
            asyncio.run(chat.chat("u1", ChatRequest(message="Ciao")))
        assert exc_info.value.message == AI_UNAVAILABLE_MESSAGE
        assert exc_info.value.status_code == 503

    def test_generator_timeout(self, services):
        chat = ChatService(SlowGenerator(), services.documents, services.conversations, timeout=0.05)
        with pytest.raises(AIGenerationError):
            asyncio.run(chat.chat("u1", ChatRequest(message="Ciao")))

    def test_exchange_recorded_in_owned_conversation(self, services):
        async def run():
            conversation = await services.conversations.create_conversation(
                "u1", ConversationCreate(persona_type="tutor")
            )
            await services.chat.chat("u1", ChatRequest(message="Ciao", conversationId=conversation.id))
            # not owned by u2: reply still returned, nothing recorded
            await services.chat.chat("u2", ChatRequest(message="Ciao", conversationId=conversation.id))
            return await services.conversations.get_conversation(conversation.id, "u1")

        conversation = asyncio.run(run())

        assert [m.role for m in conversation.messages] == ["user", "assistant"]
        assert conversation.messages[1].agent == "tutor"

    def test_ask_document_requires_ids(self, services):
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(services.chat.ask_document("u1", DocumentChatRequest(message="Riassumi")))
        assert exc_info.value.message == "At least one document ID is required"

    def test_ask_document_needs_completed_owned_documents(self, services):
        async def run():
            pending = await services.documents.create_document(
                "u1", DocumentCreate(title="In corso", file_type="pdf", file_size=10)
            )
            foreign = await services.documents.create_document(
                "u2", DocumentCreate(title="Altrui", file_type="txt", file_size=10, content_text="Testo")
            )
            with pytest.raises(NotFoundError) as exc_info:
                await services.chat.ask_document(
                    "u1", DocumentChatRequest(message="Riassumi", document_ids=[pending.id, foreign.id])
                )
            return exc_info.value.message

        assert asyncio.run(run()) == "No valid documents found"

    def test_ask_document_summary(self, services):
        async def run():
            doc = await services.documents.create_document(
                "u1",
                DocumentCreate(
                    title="Calcolo", file_type="txt", file_size=10,
                    content_text="Derivate e integrali.", summary="Derivate e integrali.",
                ),
            )
            return await services.chat.ask_document(
                "u1", DocumentChatRequest(message="Riassumi i punti principali", document_ids=[doc.id])
            )

        response = asyncio.run(run())

        assert "Calcolo" in response.message
        assert "Derivate e integrali." in response.message


class TestConversationService:
    """Owner-scoped conversation CRUD"""

    def test_persona_required(self):
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(ConversationService().create_conversation("u1", ConversationCreate()))
        assert exc_info.value.message == "Persona type is required"

    def test_default_title(self):
        conversation = asyncio.run(
            ConversationService().create_conversation("u1", ConversationCreate(persona_type="docente"))
        )
        assert conversation.title == "Conversazione con Docente"
        assert conversation.id.startswith("conv-")

    def test_list_newest_first(self):
        async def run():
            service = ConversationService()
            first = await service.create_conversation("u1", ConversationCreate(persona_type="tutor"))
            await service.create_conversation("u1", ConversationCreate(persona_type="coach"))
            await service.create_conversation("u2", ConversationCreate(persona_type="coach"))
            await asyncio.sleep(0.01)
            await service.update_conversation(first.id, "u1", ConversationUpdate(title="Aggiornata"))
            return await service.list_conversations("u1")

        listing = asyncio.run(run())

        assert listing.total == 2
        assert not listing.has_more
        assert listing.conversations[0].title == "Aggiornata"

    def test_not_owned_is_not_found(self):
        async def run():
            service = ConversationService()
            conversation = await service.create_conversation("u1", ConversationCreate(persona_type="tutor"))
            for call in (
                service.get_conversation(conversation.id, "u2"),
                service.update_conversation(conversation.id, "u2", ConversationUpdate(title="x")),
                service.delete_conversation(conversation.id, "u2"),
            ):
                with pytest.raises(NotFoundError) as exc_info:
                    await call
                assert exc_info.value.message == "Conversation not found"

        asyncio.run(run())

    def test_delete_is_physical(self):
        async def run():
            service = ConversationService()
            conversation = await service.create_conversation("u1", ConversationCreate(persona_type="tutor"))
            await service.delete_conversation(conversation.id, "u1")
            return await service.store.count()

        assert asyncio.run(run()) == 0


class TestConversationSearch:
    """Query, persona filter, sorting and paging of a user's conversations"""

    @staticmethod
    def _seed(service):
        async def run():
            algebra = await service.create_conversation("u1", ConversationCreate(persona_type="tutor", title="Zeta"))
            await service.update_conversation(algebra.id, "u1", ConversationUpdate(
                messages=[Message(role="user", content="Ripasso di algebra"), Message(role="assistant", content="Certo")]
            ))
            await service.create_conversation("u1", ConversationCreate(persona_type="coach", title="Èsame finale"))
            await service.create_conversation("u1", ConversationCreate(persona_type="coach", title="Alfa"))
            await service.create_conversation("u2", ConversationCreate(persona_type="coach", title="Algebra altrui"))
        asyncio.run(run())
        return service

    def _list(self, service, **search):
        return asyncio.run(service.list_conversations("u1", ConversationSearch(**search)))

    def test_query_matches_message_content(self):
        service = self._seed(ConversationService())

        listing = self._list(service, query="ALGEBRA")

        assert [conv.title for conv in listing.conversations] == ["Zeta"]
        assert listing.total == 1

    def test_persona_filter(self):
        service = self._seed(ConversationService())

        listing = self._list(service, persona="coach")

        assert {conv.title for conv in listing.conversations} == {"Èsame finale", "Alfa"}

    def test_sort_by_title_ignores_accents(self):
        service = self._seed(ConversationService())

        listing = self._list(service, sort_by="title", sort_order="asc")

        assert [conv.title for conv in listing.conversations] == ["Alfa", "Èsame finale", "Zeta"]

    def test_sort_by_message_count(self):
        service = self._seed(ConversationService())

        listing = self._list(service, sort_by="messages", sort_order="desc")

        assert listing.conversations[0].title == "Zeta"

    def test_limit_and_offset(self):
        service = self._seed(ConversationService())

        first = self._list(service, sort_by="title", sort_order="asc", limit=2)
        rest = self._list(service, sort_by="title", sort_order="asc", limit=2, offset=2)

        assert [conv.title for conv in first.conversations] == ["Alfa", "Èsame finale"]
        assert first.has_more
        assert [conv.title for conv in rest.conversations] == ["Zeta"]
        assert not rest.has_more
        assert rest.total == 3

    def test_limit_bounds(self):
        with pytest.raises(PydanticValidationError):
            ConversationSearch(limit=0)
        with pytest.raises(PydanticValidationError):
            ConversationSearch(offset=-1)
