"""Heuristic content analysis: language, subject area and tag catalog"""

import logging
import time
from typing import Dict, List, Optional

from didattika.config.settings import get_settings
from didattika.models.tag import (
    DifficultyLevel,
    FurtherReading,
    GeneratedTag,
    TagCategory,
    TagExplanation,
    TagGenerationResult,
)
from didattika.utils.exceptions import AIGenerationError
from didattika.utils.performance import monitor_performance

logger = logging.getLogger(__name__)
settings = get_settings()

MAX_TAGS_PER_DOCUMENT = 20
LANGUAGE_SAMPLE_TOKENS = 100
ITALIAN_RATIO_THRESHOLD = 0.15
DEFAULT_SUBJECT = "general"

ITALIAN_STOP_WORDS = frozenset([
    "il", "la", "di", "che", "e", "per", "con", "del", "una", "sono",
    "della", "le", "da", "un", "dei", "delle", "nel", "sulla", "dalla",
])

# Declaration order breaks ties
SUBJECT_KEYWORDS: Dict[str, List[str]] = {
    "matematica": ["algebra", "geometria", "calcolo", "equazione", "formula", "teorema", "funzione"],
    "fisica": ["energia", "forza", "movimento", "velocità", "accelerazione", "massa", "gravitazione"],
    "chimica": ["molecola", "atomo", "reazione", "elemento", "composto", "ossidazione", "legame"],
    "biologia": ["cellula", "organismo", "evoluzione", "genetica", "fotosintesi", "dna", "specie"],
    "storia": ["guerra", "regno", "impero", "rivoluzione", "secolo", "battaglia", "civiltà"],
    "letteratura": ["romanzo", "poesia", "autore", "personaggio", "racconto", "opera", "critica"],
    "geografia": ["continente", "clima", "popolazione", "territorio", "confine", "capitale", "regione"],
    "filosofia": ["etica", "logica", "metafisica", "pensiero", "ragione", "verità", "esistenza"],
}

TAG_COLORS = {
    TagCategory.CONCEPT: "#3B82F6",
    TagCategory.SKILL: "#10B981",
    TagCategory.TOPIC: "#F59E0B",
    TagCategory.KEYWORD: "#6366F1",
    TagCategory.METHOD: "#EC4899",
    TagCategory.THEORY: "#8B5CF6",
    TagCategory.APPLICATION: "#EF4444",
    TagCategory.PERSON: "#8B5CF6",
    TagCategory.DATE: "#6B7280",
    TagCategory.LOCATION: "#059669",
}
DEFAULT_TAG_COLOR = "#6B7280"

TAG_ICONS = {
    TagCategory.CONCEPT: "💡",
    TagCategory.SKILL: "🎯",
    TagCategory.TOPIC: "📚",
    TagCategory.KEYWORD: "🔑",
    TagCategory.METHOD: "🛠️",
    TagCategory.THEORY: "🧠",
    TagCategory.APPLICATION: "⚡",
    TagCategory.PERSON: "👤",
    TagCategory.DATE: "📅",
    TagCategory.LOCATION: "📍",
}
DEFAULT_TAG_ICON = "🏷️"

# Fixed tag catalog per subject; subjects without an entry use the general one
TAG_CATALOG: Dict[str, List[dict]] = {
    "matematica": [
        {
            "name": "algebra",
            "display_name": "Algebra",
            "description": "Ramo della matematica che studia le operazioni con simboli e variabili",
            "category": TagCategory.CONCEPT,
            "confidence": 0.89,
            "difficulty": DifficultyLevel.INTERMEDIATE,
            "icon": "🔢",
            "snippet": "L'algebra è fondamentale per...",
        },
        {
            "name": "equazioni",
            "display_name": "Equazioni",
            "description": "Uguaglianze matematiche contenenti una o più variabili da determinare",
            "category": TagCategory.SKILL,
            "confidence": 0.85,
            "difficulty": DifficultyLevel.INTERMEDIATE,
            "icon": "⚖️",
            "snippet": "Le equazioni lineari permettono di...",
        },
    ],
    "storia": [
        {
            "name": "rinascimento",
            "display_name": "Rinascimento",
            "description": "Periodo di rinnovamento culturale e artistico in Europa (XIV-XVI secolo)",
            "category": TagCategory.TOPIC,
            "confidence": 0.92,
            "difficulty": DifficultyLevel.INTERMEDIATE,
            "icon": "🎨",
            "snippet": "Il Rinascimento segna una svolta...",
        },
        {
            "name": "leonardo-da-vinci",
            "display_name": "Leonardo da Vinci",
            "description": "Artista, inventore e genio universale del Rinascimento italiano",
            "category": TagCategory.PERSON,
            "confidence": 0.87,
            "difficulty": DifficultyLevel.BEGINNER,
            "icon": "👤",
            "snippet": "Leonardo da Vinci rappresenta...",
        },
    ],
    DEFAULT_SUBJECT: [
        {
            "name": "analisi",
            "display_name": "Analisi",
            "description": "Processo di esame dettagliato di un argomento o fenomeno",
            "category": TagCategory.SKILL,
            "confidence": 0.75,
            "difficulty": DifficultyLevel.INTERMEDIATE,
            "icon": "🔍",
            "snippet": "L'analisi del problema rivela...",
        },
        {
            "name": "metodologia",
            "display_name": "Metodologia",
            "description": "Insieme sistematico di metodi e principi per condurre ricerca o studio",
            "category": TagCategory.METHOD,
            "confidence": 0.68,
            "difficulty": DifficultyLevel.ADVANCED,
            "icon": "📋",
            "snippet": "La metodologia seguita prevede...",
        },
    ],
}

SNIPPET_RADIUS = 40


class ContentAnalysisService:
    """Derives tags and explanations from document text.

    Everything here is lookup-table driven: language comes from a stop-word
    ratio, subject from keyword counts, and tags from a fixed per-subject
    catalog annotated with where their keywords occur in the text.
    """

    def __init__(self, max_tags: Optional[int] = None):
        self.default_max_tags = min(max_tags or settings.max_tags_per_document, MAX_TAGS_PER_DOCUMENT)

    def detect_language(self, content: str) -> str:
        """Return ``it`` when Italian stop words exceed 15% of the first 100 tokens, else ``en``."""
        words = content.lower().split()[:LANGUAGE_SAMPLE_TOKENS]
        italian_count = sum(1 for word in words if word in ITALIAN_STOP_WORDS)
        return "it" if italian_count > len(words) * ITALIAN_RATIO_THRESHOLD else "en"

    def detect_subject_area(self, content: str) -> str:
        content_lower = content.lower()
        best_subject = DEFAULT_SUBJECT
        best_count = 0

        for subject, keywords in SUBJECT_KEYWORDS.items():
            count = sum(content_lower.count(keyword) for keyword in keywords)
            if count > best_count:
                best_subject = subject
                best_count = count

        return best_subject

    @staticmethod
    def extract_position_references(content: str, keyword: str) -> List[int]:
        """Character offsets of every case-insensitive occurrence, overlapping ones included."""
        positions: List[int] = []
        if not keyword:
            return positions

        content_lower = content.lower()
        keyword_lower = keyword.lower()
        position = content_lower.find(keyword_lower)
        while position != -1:
            positions.append(position)
            position = content_lower.find(keyword_lower, position + 1)
        return positions

    @staticmethod
    def get_tag_color(category: TagCategory) -> str:
        return TAG_COLORS.get(category, DEFAULT_TAG_COLOR)

    @staticmethod
    def get_tag_icon(category: TagCategory) -> str:
        return TAG_ICONS.get(category, DEFAULT_TAG_ICON)

    def _context_snippet(self, content: str, positions: List[int], fallback: str) -> str:
        if not positions:
            return fallback
        start = max(positions[0] - SNIPPET_RADIUS, 0)
        end = positions[0] + SNIPPET_RADIUS
        return content[start:end].strip()

    def _build_tags(self, content: str, subject: str, language: str) -> List[GeneratedTag]:
        entries = TAG_CATALOG.get(subject, TAG_CATALOG[DEFAULT_SUBJECT])
        tags = []

        for entry in entries:
            category = entry["category"]
            keyword = entry["display_name"]
            positions = self.extract_position_references(content, keyword)
            tags.append(GeneratedTag(
                name=entry["name"],
                display_name=entry["display_name"],
                description=entry["description"],
                category=category,
                confidence_score=entry["confidence"],
                frequency=len(positions),
                difficulty_level=entry["difficulty"],
                subject_area=subject,
                language=language,
                color=self.get_tag_color(category),
                icon=entry["icon"],
                position_references=positions,
                context_snippet=self._context_snippet(content, positions, entry["snippet"]),
                relevance_score=entry["confidence"],
            ))

        return tags

    @monitor_performance("content_analysis.generate_tags")
    async def generate_tags(
        self,
        content: str,
        subject_hint: Optional[str] = None,
        language_hint: Optional[str] = None,
        max_tags: Optional[int] = None,
        document_id: Optional[str] = None
    ) -> TagGenerationResult:
        """Generate catalog tags for ``content``; hints override detection."""
        start_time = time.time()

        try:
            language = language_hint or self.detect_language(content)
            subject = subject_hint or self.detect_subject_area(content)

            limit = min(max_tags or self.default_max_tags, MAX_TAGS_PER_DOCUMENT)
            tags = self._build_tags(content, subject, language)[:limit]

            logger.info(f"Generated {len(tags)} tags (subject={subject}, language={language})")

            return TagGenerationResult(
                document_id=document_id,
                generated_tags=tags,
                processing_time=time.time() - start_time,
                language_detected=language,
                subject_area_detected=subject,
            )

        except Exception as e:
            logger.error(f"Tag generation failed: {str(e)}")
            raise AIGenerationError(f"Failed to generate tags: {str(e)}") from e

    async def generate_explanation(
        self,
        tag_id: str,
        user_level: DifficultyLevel = DifficultyLevel.INTERMEDIATE,
        context: Optional[str] = None
    ) -> TagExplanation:
        level = DifficultyLevel(user_level).value
        return TagExplanation(
            tag_id=tag_id,
            definition="Definizione chiara e concisa del concetto basata sul livello dell'utente.",
            detailed_explanation=(
                "Spiegazione dettagliata che approfondisce il concetto, fornendo contesto e "
                "collegamenti con altri argomenti correlati. Questa spiegazione è adattata al "
                "livello specificato dall'utente."
            ),
            examples=[
                "Esempio pratico numero 1 che illustra l'applicazione del concetto",
                "Esempio pratico numero 2 con un caso d'uso diverso",
                "Esempio pratico numero 3 che mostra variazioni del concetto",
            ],
            key_points=[
                "Punto chiave 1: aspetto fondamentale da ricordare",
                "Punto chiave 2: caratteristica distintiva importante",
                "Punto chiave 3: applicazione pratica essenziale",
                "Punto chiave 4: collegamento con altri concetti",
            ],
            study_tips=[
                "Suggerimento 1: Come approcciare lo studio di questo concetto",
                "Suggerimento 2: Tecniche di memorizzazione efficaci",
                "Suggerimento 3: Esercizi pratici consigliati",
                "Suggerimento 4: Risorse aggiuntive per l'approfondimento",
            ],
            further_reading=[
                FurtherReading(
                    title="Approfondimento teorico",
                    description="Lettura avanzata per comprendere meglio gli aspetti teorici",
                ),
                FurtherReading(
                    title="Applicazioni pratiche",
                    description="Esempi reali di utilizzo del concetto",
                ),
                FurtherReading(
                    title="Ricerca contemporanea",
                    description="Sviluppi recenti e ricerca attuale sull'argomento",
                ),
            ],
            difficulty_explanation=(
                f"Questo concetto è classificato come {level} perché richiede una comprensione "
                "di base dei principi fondamentali e la capacità di applicare il ragionamento "
                "logico in contesti specifici."
            ),
        )
