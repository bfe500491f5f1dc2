"""Service layer"""

from .store import RecordStore, InMemoryStore
from .content_analysis import ContentAnalysisService
from .document_service import DocumentService
from .chat_service import (
    ChatService,
    ResponseGenerator,
    TemplateResponseGenerator,
    OpenAIResponseGenerator,
    create_response_generator,
)
from .conversation_service import ConversationService
from .teacher_service import TeacherReviewService, seed_student_documents
from .feedback_service import TeacherFeedbackService
from .tag_service import TagValidationService

__all__ = [
    'RecordStore',
    'InMemoryStore',
    'ContentAnalysisService',
    'DocumentService',
    'ChatService',
    'ResponseGenerator',
    'TemplateResponseGenerator',
    'OpenAIResponseGenerator',
    'create_response_generator',
    'ConversationService',
    'TeacherReviewService',
    'seed_student_documents',
    'TeacherFeedbackService',
    'TagValidationService',
]
