"""Persona chat: pluggable response generators and the chat orchestration"""

import logging
import asyncio
import random
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

import openai
from pydantic import BaseModel

from didattika.config.personas import get_persona_prompt
from didattika.config.settings import get_settings
from didattika.models.base import utc_now
from didattika.models.conversation import (
    ChatRequest,
    ChatResponse,
    DocumentChatRequest,
    Message,
)
from didattika.models.document import Document
from didattika.models.persona import PersonaType
from didattika.utils.exceptions import AIGenerationError, NotFoundError, ValidationError
from didattika.utils.performance import monitor_performance

logger = logging.getLogger(__name__)
settings = get_settings()

AI_UNAVAILABLE_MESSAGE = "AI service temporarily unavailable. Please try again in a moment."
HISTORY_TURNS = 5
SUMMARY_PREVIEW_CHARS = 150


class DocumentContext(BaseModel):
    """What a generator gets to see of a document"""
    title: str
    summary: str = ""
    content_preview: str = ""
    file_type: str
    truncated: bool = False

    @classmethod
    def from_document(cls, document: Document, max_chars: int) -> "DocumentContext":
        content = document.content_text or ""
        return cls(
            title=document.title,
            summary=document.summary or "",
            content_preview=content[:max_chars],
            file_type=document.file_type,
            truncated=len(content) > max_chars,
        )


class ResponseGenerator(ABC):
    """Turns a user message into assistant text for a persona."""

    @abstractmethod
    async def generate(
        self,
        message: str,
        persona: PersonaType,
        history: Sequence[Message],
        documents: Optional[Sequence[DocumentContext]] = None
    ) -> str:
        ...


# (category, keywords) checked in order; first match wins
CATEGORY_KEYWORDS: Dict[PersonaType, List[Tuple[str, List[str]]]] = {
    PersonaType.TUTOR: [
        ("math", ["matematica", "calcolo", "algebra", "geometria"]),
        ("science", ["scienza", "fisica", "chimica", "biologia"]),
        ("greetings", ["ciao", "aiuto", "inizio", "salve"]),
    ],
    PersonaType.DOCENTE: [
        ("planning", ["programmazione", "curricolo", "piano", "didattica"]),
        ("assessment", ["valutazione", "verifica", "test", "voto"]),
        ("technology", ["tecnologia", "digitale", "strumenti", "lim"]),
    ],
    PersonaType.COACH: [
        ("motivation", ["motivazione", "demotivato", "difficoltà", "scoraggiato"]),
        ("study_methods", ["studio", "metodo", "apprendimento", "tecnica"]),
        ("time_management", ["tempo", "organizzazione", "gestione", "pianificazione"]),
    ],
}

RESPONSE_TEMPLATES: Dict[PersonaType, Dict[str, List[str]]] = {
    PersonaType.TUTOR: {
        "greetings": [
            "Ciao! Sono felice di aiutarti nel tuo percorso di apprendimento. Su quale argomento hai bisogno di supporto?",
            "Benvenuto! Sono qui per aiutarti a comprendere meglio qualsiasi concetto. Dimmi cosa stai studiando.",
            "Salve! Sono il tuo tutor personale. Insieme possiamo affrontare qualsiasi sfida di apprendimento. Da dove iniziamo?",
        ],
        "math": [
            "La matematica può sembrare complessa, ma spezzandola in piccoli passi diventa molto più gestibile. "
            "Partiamo dall'inizio: qual è la parte che trovi più difficile?",
            "Ottima domanda! In matematica è importante capire i concetti di base prima di procedere. "
            "Ti faccio un esempio pratico per chiarire...",
            "La matematica è come costruire una casa: serve una base solida. "
            "Dimmi qual è il tuo livello attuale e cosa vuoi imparare.",
        ],
        "science": [
            "Le scienze sono affascinanti perché ci aiutano a capire il mondo che ci circonda. "
            "Proviamo a collegare questo concetto a qualcosa che conosci già.",
            "Questo è un argomento molto interessante! Ti spiego con un esperimento mentale che renderà tutto più chiaro.",
            "La scienza è ovunque intorno a noi! Facciamo un esempio pratico per rendere questo concetto più concreto.",
        ],
        "general": [
            "Capisco la tua difficoltà. Proviamo ad affrontare questo argomento da un'altra prospettiva. "
            "Dimmi cosa sai già sull'argomento.",
            "Ottima domanda! È normale avere dubbi. Ti aiuto a chiarire questo punto passo dopo passo.",
            "Non preoccuparti, insieme troveremo il modo migliore per farti capire. Dimmi cosa ti confonde di più.",
        ],
    },
    PersonaType.DOCENTE: {
        "planning": [
            "Per una programmazione efficace, consideriamo gli obiettivi di apprendimento, i tempi disponibili "
            "e le caratteristiche della classe. Quale materia stai programmando?",
            "La programmazione didattica richiede un approccio sistemico. "
            "Iniziamo definendo le competenze che vuoi sviluppare nei tuoi studenti.",
            "Eccellente! La pianificazione è la chiave del successo didattico. "
            "Parliamo dei tuoi obiettivi specifici per questa unità.",
        ],
        "assessment": [
            "La valutazione deve essere coerente con gli obiettivi didattici. Ti suggerisco di considerare diverse "
            "tipologie: formativa, sommativa e autentica. Su cosa vuoi concentrarti?",
            "Per una valutazione efficace, è importante avere criteri chiari e condivisi. "
            "Possiamo creare insieme una rubrica di valutazione.",
            "La valutazione è un processo continuo che guida l'apprendimento. "
            "Che tipo di feedback vuoi fornire ai tuoi studenti?",
        ],
        "technology": [
            "L'integrazione della tecnologia in classe può rendere l'apprendimento più coinvolgente. "
            "Quali strumenti hai a disposizione?",
            "Le tecnologie educative offrono molte opportunità. Ti suggerisco di iniziare con strumenti semplici ma efficaci.",
            "La tecnologia deve essere al servizio della didattica, non fine a se stessa. "
            "Parliamo di come può migliorare il tuo insegnamento.",
        ],
        "general": [
            "Come posso aiutarti nella tua attività didattica? Sono qui per supportarti nella programmazione, "
            "nella valutazione o in qualsiasi altra necessità pedagogica.",
            "Comprendo le sfide dell'insegnamento moderno. Lavoriamo insieme per trovare soluzioni pratiche ed efficaci.",
            "La professione docente è complessa ma gratificante. "
            "Dimmi qual è la tua sfida principale e troviamo insieme la soluzione.",
        ],
    },
    PersonaType.COACH: {
        "motivation": [
            "È normale attraversare momenti di difficoltà nello studio. L'importante è non arrendersi "
            "e trovare la strategia giusta per te. Parliamo di cosa ti blocca.",
            "La motivazione è come un muscolo: va allenata ogni giorno. "
            "Iniziamo identificando i tuoi obiettivi e le tue passioni.",
            "Ogni grande successo inizia con il primo passo! "
            "Dimmi qual è il tuo obiettivo e costruiamo insieme il percorso per raggiungerlo.",
        ],
        "study_methods": [
            "Ogni persona ha un metodo di studio ideale. Scopriamo insieme qual è il tuo stile di apprendimento: "
            "sei più visivo, auditivo o cinestetico?",
            "Ottima domanda! Il metodo di studio giusto può fare una grande differenza. Ti insegno alcune tecniche efficaci.",
            "Il segreto è trovare il metodo che funziona per TE. "
            "Parlami delle tue abitudini attuali e vediamo come ottimizzarle.",
        ],
        "time_management": [
            "La gestione del tempo è una competenza fondamentale. "
            "Iniziamo creando una routine che funzioni per te. Qual è la tua giornata tipo?",
            "Capisco la difficoltà nel gestire tutto. Ti aiuto a creare un piano di studio sostenibile ed efficace.",
            "Il tempo è la risorsa più preziosa! Organizziamo insieme la tua giornata per massimizzare i risultati.",
        ],
        "general": [
            "Sono qui per aiutarti a sviluppare le tue potenzialità. Ogni sfida è un'opportunità di crescita. "
            "Dimmi cosa ti preoccupa di più.",
            "Complimenti per aver cercato supporto! È il primo passo verso il miglioramento. Come posso aiutarti oggi?",
            "Hai già dimostrato coraggio nel chiedere aiuto. "
            "Insieme possiamo trasformare ogni ostacolo in un'opportunità!",
        ],
    },
}

# {title} is the first document's title
DOCUMENT_TEMPLATES: Dict[PersonaType, List[str]] = {
    PersonaType.TUTOR: [
        'Basandomi sui documenti che hai caricato, posso spiegarti questo concetto step by step. '
        'Nel documento "{title}" viene menzionato che...',
        'Ottima domanda! Guardando i contenuti del tuo documento "{title}", posso aiutarti a comprendere '
        'meglio questo argomento. Iniziamo con...',
        "Dal documento che hai condiviso emerge chiaramente che... "
        "Lascia che ti spieghi questo concetto in modo più semplice e dettagliato.",
    ],
    PersonaType.DOCENTE: [
        "Analizzando i materiali didattici che hai fornito, posso aiutarti a strutturare una lezione su questo "
        'argomento. Il documento "{title}" contiene elementi chiave per...',
        'Basandomi sui contenuti del documento "{title}", posso suggerirti alcune strategie didattiche '
        "efficaci per questo argomento...",
        "I materiali che hai caricato offrono spunti interessanti per la programmazione didattica. "
        "Nel documento si evidenzia che...",
    ],
    PersonaType.COACH: [
        'Perfetto! Dal documento "{title}" che hai condiviso posso aiutarti a creare un piano di studio '
        "efficace. Vedo che...",
        "Ottimo materiale di studio! Basandomi sui contenuti del tuo documento, posso suggerirti il metodo "
        "migliore per apprendere questi concetti...",
        "Dal documento emerge che questo argomento richiede un approccio specifico. "
        "Ti aiuto a organizzare lo studio in modo efficace...",
    ],
}

SUMMARY_CLOSINGS = {
    PersonaType.TUTOR: "Vuoi che ti spieghi uno di questi punti in dettaglio?",
    PersonaType.DOCENTE: "Questi contenuti possono essere utilizzati per creare attività didattiche specifiche.",
    PersonaType.COACH: "Possiamo creare un piano di studio basato su questi argomenti!",
}

EXPLANATION_CLOSINGS = {
    PersonaType.TUTOR: "Ti spiego questo concetto passo dopo passo basandomi sul tuo materiale...",
    PersonaType.DOCENTE: "Questo argomento può essere sviluppato in una lezione strutturata...",
    PersonaType.COACH: "Ecco il metodo migliore per studiare questo argomento...",
}

DEFAULT_CLOSINGS = {
    PersonaType.TUTOR: "💡 Hai altre domande su questi materiali?",
    PersonaType.DOCENTE: "📝 Posso aiutarti a creare materiali didattici basati su questi contenuti.",
    PersonaType.COACH: "🎯 Vuoi che ti aiuti a organizzare un piano di studio personalizzato?",
}

EXPLANATION_TRIGGERS = ["spiegami", "cosa significa", "come"]
SUMMARY_TRIGGERS = ["riassumi", "punti principali"]


def classify_message(message: str, persona: PersonaType) -> str:
    """Topic category for a chat message; ``general`` when nothing matches."""
    message_lower = message.lower()
    for category, keywords in CATEGORY_KEYWORDS[PersonaType(persona)]:
        if any(keyword in message_lower for keyword in keywords):
            return category
    return "general"


def classify_document_request(message: str) -> str:
    message_lower = message.lower()
    if any(trigger in message_lower for trigger in EXPLANATION_TRIGGERS):
        return "explanation"
    if any(trigger in message_lower for trigger in SUMMARY_TRIGGERS):
        return "summary"
    return "general"


class TemplateResponseGenerator(ResponseGenerator):
    """Canned Italian replies picked at random per persona and topic"""

    def __init__(
        self,
        delay_min: Optional[float] = None,
        delay_max: Optional[float] = None,
        rng: Optional[random.Random] = None
    ):
        self.delay_min = settings.response_delay_min if delay_min is None else delay_min
        self.delay_max = settings.response_delay_max if delay_max is None else delay_max
        self.rng = rng or random.Random()

    async def _simulate_latency(self) -> None:
        if self.delay_max <= 0:
            return
        await asyncio.sleep(self.rng.uniform(min(self.delay_min, self.delay_max), self.delay_max))

    async def generate(
        self,
        message: str,
        persona: PersonaType,
        history: Sequence[Message],
        documents: Optional[Sequence[DocumentContext]] = None
    ) -> str:
        persona = PersonaType(persona)
        await self._simulate_latency()

        if documents:
            return self._document_response(message, persona, documents)

        category = classify_message(message, persona)
        return self.rng.choice(RESPONSE_TEMPLATES[persona][category])

    def _document_response(
        self,
        message: str,
        persona: PersonaType,
        documents: Sequence[DocumentContext]
    ) -> str:
        category = classify_document_request(message)
        first = documents[0]

        if category == "explanation":
            return (
                f'🎯 **Spiegazione basata sul documento "{first.title}":**\n\n'
                f"{first.summary}\n\n"
                f"{EXPLANATION_CLOSINGS[persona]}"
            )

        if category == "summary":
            points = "\n".join(
                f'**{index}. Dal documento "{doc.title}":**\n{doc.summary or "Contenuto in elaborazione..."}\n'
                for index, doc in enumerate(documents, 1)
            )
            return (
                "📋 **Riassunto basato sui tuoi documenti:**\n\n"
                "Dai documenti che hai caricato, ecco i punti principali:\n\n"
                f"{points}\n"
                f"{SUMMARY_CLOSINGS[persona]}"
            )

        base = self.rng.choice(DOCUMENT_TEMPLATES[persona]).format(title=first.title)
        references = "\n".join(
            f"• **{doc.title}**: {doc.summary[:SUMMARY_PREVIEW_CHARS]}..." for doc in documents
        )
        return (
            f"{base}\n\n"
            "📚 **Riferimenti dai tuoi documenti:**\n"
            f"{references}\n\n"
            f"{DEFAULT_CLOSINGS[persona]}"
        )


class OpenAIResponseGenerator(ResponseGenerator):
    """Chat completions against an OpenAI-compatible endpoint"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_name: Optional[str] = None
    ):
        self.api_key = api_key or settings.openai_api_key
        self.base_url = base_url or settings.openai_base_url
        self.model_name = model_name or settings.openai_model
        self.client = None
        self._client_lock = asyncio.Lock()

    async def initialize(self):
        if self.client is None:
            async with self._client_lock:
                if self.client is None:
                    if not self.api_key:
                        raise ValueError("OPENAI_API_KEY is not set")

                    self.client = openai.AsyncOpenAI(
                        api_key=self.api_key,
                        base_url=self.base_url
                    )
                    logger.info(f"OpenAI client initialised for model {self.model_name}")

    def _build_document_prompt(self, persona: PersonaType, documents: Sequence[DocumentContext]) -> str:
        context = "\n---\n".join(
            f"DOCUMENTO: {doc.title} ({doc.file_type.upper()})\n"
            f"RIASSUNTO: {doc.summary}\n"
            f"CONTENUTO: {doc.content_preview}{'...' if doc.truncated else ''}"
            for doc in documents
        )
        return (
            f"{get_persona_prompt(persona)}\n\n"
            "IMPORTANTE: Rispondi basandoti ESCLUSIVAMENTE sui documenti forniti dall'utente.\n"
            "Se la domanda non può essere risposta con i documenti disponibili, dillo chiaramente.\n"
            "Cita sempre la fonte specifica quando possibile (es. \"Nel documento 'Titolo documento'...\").\n\n"
            f"DOCUMENTI DISPONIBILI:\n{context}"
        )

    async def generate(
        self,
        message: str,
        persona: PersonaType,
        history: Sequence[Message],
        documents: Optional[Sequence[DocumentContext]] = None
    ) -> str:
        await self.initialize()

        if documents:
            messages = [{"role": "system", "content": self._build_document_prompt(persona, documents)}]
        else:
            messages = [{"role": "system", "content": get_persona_prompt(persona)}]
            for turn in list(history)[-HISTORY_TURNS:]:
                messages.append({
                    "role": "user" if turn.role == "user" else "assistant",
                    "content": turn.content,
                })
        messages.append({"role": "user", "content": message})

        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=messages,
            temperature=0.7,
            max_tokens=800 if documents else 500,
        )

        content = response.choices[0].message.content
        if not content:
            raise ValueError("Empty completion")
        return content.strip()


def create_response_generator() -> ResponseGenerator:
    """OpenAI when a key is configured, canned templates otherwise."""
    if settings.openai_api_key:
        return OpenAIResponseGenerator()
    return TemplateResponseGenerator()


class ChatService:
    """Validates chat input, calls the generator, records the exchange"""

    def __init__(
        self,
        generator: ResponseGenerator,
        document_service,
        conversation_service,
        timeout: Optional[float] = None
    ):
        self.generator = generator
        self.document_service = document_service
        self.conversation_service = conversation_service
        self.timeout = timeout or settings.ai_timeout

    @staticmethod
    def validate_message(message: Optional[str]) -> str:
        if not message or not message.strip():
            raise ValidationError("Message is required")
        if len(message) > settings.chat_max_message_length:
            raise ValidationError(
                f"Message too long. Please keep it under {settings.chat_max_message_length} characters."
            )
        return message

    @monitor_performance("chat.generate")
    async def generate_response(
        self,
        message: str,
        persona: PersonaType,
        history: Sequence[Message] = (),
        documents: Optional[Sequence[DocumentContext]] = None
    ) -> str:
        """Run the generator under the configured timeout; any failure is an AIGenerationError."""
        try:
            return await asyncio.wait_for(
                self.generator.generate(message, persona, history, documents),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Response generation timed out after {self.timeout}s")
            raise AIGenerationError(AI_UNAVAILABLE_MESSAGE) from e
        except Exception as e:
            logger.error(f"Response generation failed: {str(e)}")
            raise AIGenerationError(AI_UNAVAILABLE_MESSAGE) from e

    async def _record_exchange(
        self,
        owner_id: str,
        conversation_id: Optional[str],
        persona: PersonaType,
        message: str,
        reply: str
    ) -> None:
        """Append both turns to the conversation; failures are logged only."""
        if not conversation_id:
            return
        try:
            await self.conversation_service.append_messages(
                conversation_id,
                owner_id,
                [
                    Message(role="user", content=message),
                    Message(role="assistant", content=reply, agent=persona),
                ],
            )
        except Exception as e:
            logger.warning(f"Could not record chat exchange in {conversation_id}: {str(e)}")

    async def chat(self, owner_id: str, request: ChatRequest) -> ChatResponse:
        message = self.validate_message(request.message)
        reply = await self.generate_response(message, request.persona, request.conversationHistory)

        await self._record_exchange(owner_id, request.conversationId, request.persona, message, reply)

        return ChatResponse(
            message=reply,
            persona=request.persona,
            conversationId=request.conversationId,
            timestamp=utc_now().isoformat(),
        )

    async def generate_document_response(
        self,
        owner_id: str,
        message: str,
        document_ids: List[str],
        persona: PersonaType = PersonaType.TUTOR
    ) -> str:
        """Answer ``message`` from the caller's completed documents among ``document_ids``."""
        if not document_ids:
            raise ValidationError("At least one document ID is required")

        documents = await self.document_service.get_completed_documents(owner_id, document_ids)
        if not documents:
            raise NotFoundError("No valid documents found")

        contexts = [
            DocumentContext.from_document(doc, settings.document_context_chars)
            for doc in documents
        ]
        return await self.generate_response(message, persona, (), contexts)

    async def ask_document(self, owner_id: str, request: DocumentChatRequest) -> ChatResponse:
        message = self.validate_message(request.message)
        reply = await self.generate_document_response(
            owner_id, message, request.document_ids, request.persona
        )

        await self._record_exchange(owner_id, request.conversation_id, request.persona, message, reply)

        return ChatResponse(
            message=reply,
            persona=request.persona,
            conversationId=request.conversation_id,
            timestamp=utc_now().isoformat(),
        )
