"""API dependency injection"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, Header

from didattika.config.settings import get_settings
from didattika.services import (
    ChatService,
    ContentAnalysisService,
    ConversationService,
    DocumentService,
    TagValidationService,
    TeacherFeedbackService,
    InMemoryStore,
    TeacherReviewService,
    create_response_generator,
    seed_student_documents,
)

logger = logging.getLogger(__name__)
settings = get_settings()

# Global service instances
_document_store = None
_analysis_service = None
_document_service = None
_conversation_service = None
_chat_service = None
_teacher_service = None
_feedback_service = None
_tag_service = None


async def get_analysis_service() -> ContentAnalysisService:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = ContentAnalysisService()
    return _analysis_service


async def get_document_store() -> InMemoryStore:
    """Student documents, shared by the document service and the teacher view."""
    global _document_store
    if _document_store is None:
        _document_store = InMemoryStore(seed_student_documents())
    return _document_store


async def get_document_service() -> DocumentService:
    """Document service sharing the content analyzer."""
    global _document_service
    if _document_service is None:
        _document_service = DocumentService(
            store=await get_document_store(),
            analyzer=await get_analysis_service(),
        )
    return _document_service


async def get_conversation_service() -> ConversationService:
    global _conversation_service
    if _conversation_service is None:
        _conversation_service = ConversationService()
    return _conversation_service


async def get_chat_service() -> ChatService:
    """Chat service wired to the document and conversation services."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService(
            generator=create_response_generator(),
            document_service=await get_document_service(),
            conversation_service=await get_conversation_service(),
        )
    return _chat_service


async def get_teacher_service() -> TeacherReviewService:
    global _teacher_service
    if _teacher_service is None:
        _teacher_service = TeacherReviewService(document_store=await get_document_store())
    return _teacher_service


async def get_feedback_service() -> TeacherFeedbackService:
    global _feedback_service
    if _feedback_service is None:
        _feedback_service = TeacherFeedbackService()
    return _feedback_service


async def get_tag_service() -> TagValidationService:
    global _tag_service
    if _tag_service is None:
        _tag_service = TagValidationService(feedback_service=await get_feedback_service())
    return _tag_service


async def get_current_user(x_user_id: Annotated[Optional[str], Header()] = None) -> str:
    """Caller identity; the auth layer in front of the API sets the header."""
    return x_user_id or settings.default_user_id


async def get_current_teacher(x_teacher_id: Annotated[Optional[str], Header()] = None) -> str:
    return x_teacher_id or settings.default_teacher_id


# Dependency type annotations
AnalysisServiceDep = Annotated[ContentAnalysisService, Depends(get_analysis_service)]
DocumentServiceDep = Annotated[DocumentService, Depends(get_document_service)]
ConversationServiceDep = Annotated[ConversationService, Depends(get_conversation_service)]
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
TeacherServiceDep = Annotated[TeacherReviewService, Depends(get_teacher_service)]
TagServiceDep = Annotated[TagValidationService, Depends(get_tag_service)]
CurrentUser = Annotated[str, Depends(get_current_user)]
CurrentTeacher = Annotated[str, Depends(get_current_teacher)]


async def cleanup_services():
    """Wait for background processing, then drop every service instance."""
    global _document_store, _analysis_service, _document_service, _conversation_service, _chat_service
    global _teacher_service, _feedback_service, _tag_service

    if _document_service is not None:
        await _document_service.wait_for_processing()

    logger.info("Cleaning up service resources")

    _document_store = None
    _analysis_service = None
    _document_service = None
    _conversation_service = None
    _chat_service = None
    _teacher_service = None
    _feedback_service = None
    _tag_service = None
