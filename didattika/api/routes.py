"""API route definitions"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, File, Form, HTTPException, Query as QueryParam, UploadFile, status

from didattika.api.dependencies import (
    AnalysisServiceDep,
    ChatServiceDep,
    ConversationServiceDep,
    CurrentTeacher,
    CurrentUser,
    DocumentServiceDep,
    TagServiceDep,
    TeacherServiceDep,
)
from didattika.config.personas import get_all_personas, get_persona_config
from didattika.models.conversation import (
    ChatRequest,
    ChatResponse,
    ConversationCreate,
    ConversationListResponse,
    ConversationSearch,
    ConversationSortField,
    ConversationUpdate,
    DocumentChatRequest,
)
from didattika.models.persona import PersonaType
from didattika.models.document import (
    DateRange,
    DocumentCreate,
    DocumentFilters,
    DocumentListResponse,
    DocumentUploadResponse,
)
from didattika.models.tag import (
    BulkOperationResult,
    BulkTagOperation,
    TagExplanation,
    TagExplanationRequest,
    TagGenerationRequest,
    TagCategory,
    TagCreate,
    TagGenerationResult,
    TagListResponse,
    TagStatus,
    TagUpdate,
    TagValidationRequest,
    TagValidationResult,
)
from didattika.models.teacher import (
    DocumentApprovalRequest,
    DocumentApprovalResponse,
    SortField,
    SortOrder,
    TeacherDashboardStats,
    TeacherDocumentFilters,
    TeacherDocumentListResponse,
)
from didattika.utils.exceptions import AIGenerationError, DidattikaError, ValidationError
from didattika.utils.performance import performance_monitor

logger = logging.getLogger(__name__)

router = APIRouter()

OPEN_START = datetime.min.replace(tzinfo=timezone.utc)
OPEN_END = datetime.max.replace(tzinfo=timezone.utc)


def _http_error(error: DidattikaError, status_code: Optional[int] = None) -> HTTPException:
    return HTTPException(status_code=status_code or error.status_code, detail=error.message)


def _split(value: Optional[str]) -> Optional[List[str]]:
    """Comma separated query value to a list; blank means no filter."""
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def _date_range(start: Optional[datetime], end: Optional[datetime]) -> Optional[DateRange]:
    if start is None and end is None:
        return None
    return DateRange(start=start or OPEN_START, end=end or OPEN_END)


# Document API
@router.post("/documents/upload", response_model=DocumentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    owner_id: CurrentUser,
    document_service: DocumentServiceDep,
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None)
):
    """Upload a document; text extraction continues in the background."""
    try:
        if file is None or not file.filename:
            raise HTTPException(status_code=400, detail="No file provided")

        return await document_service.upload_document(
            file=file,
            owner_id=owner_id,
            title=title,
            description=description
        )

    except HTTPException:
        raise
    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Document upload failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to upload document")


@router.post("/documents", status_code=status.HTTP_201_CREATED)
async def create_document(
    payload: DocumentCreate,
    owner_id: CurrentUser,
    document_service: DocumentServiceDep
):
    try:
        document = await document_service.create_document(owner_id, payload)
        return {"document": document, "message": "Document created successfully"}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Document creation failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create document")


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    owner_id: CurrentUser,
    document_service: DocumentServiceDep,
    page: int = QueryParam(1, ge=1),
    limit: int = QueryParam(20, ge=1, le=100),
    file_type: Optional[str] = None,
    status: Optional[str] = None,
    search_query: Optional[str] = None,
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None
):
    """List the caller's documents, newest first."""
    try:
        filters = DocumentFilters(
            file_type=_split(file_type),
            status=_split(status),
            search_query=search_query,
            date_range=_date_range(date_start, date_end),
        )
        return await document_service.list_documents(owner_id, filters, page, limit)

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to list documents: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list documents")


@router.get("/documents/{doc_id}")
async def get_document(doc_id: str, owner_id: CurrentUser, document_service: DocumentServiceDep):
    try:
        document = await document_service.get_document(doc_id, owner_id)
        return {"document": document}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to fetch document {doc_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch document")


@router.put("/documents/{doc_id}")
async def update_document(
    doc_id: str,
    owner_id: CurrentUser,
    document_service: DocumentServiceDep,
    patch: Dict[str, Any] = Body(...)
):
    try:
        document = await document_service.update_document(doc_id, owner_id, patch)
        return {"document": document, "message": "Document updated successfully"}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to update document {doc_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update document")


@router.delete("/documents/{doc_id}")
async def delete_document(doc_id: str, owner_id: CurrentUser, document_service: DocumentServiceDep):
    """Soft delete"""
    try:
        await document_service.delete_document(doc_id, owner_id)
        return {"message": "Document deleted successfully"}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to delete document {doc_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete document")


@router.post("/documents/{doc_id}/tags", response_model=TagGenerationResult)
async def generate_document_tags(
    doc_id: str,
    owner_id: CurrentUser,
    document_service: DocumentServiceDep,
    analysis_service: AnalysisServiceDep,
    request: Optional[TagGenerationRequest] = Body(None)
):
    """Tag an owned document once its text has been extracted."""
    request = request or TagGenerationRequest()
    try:
        document = await document_service.get_document(doc_id, owner_id)
        if not document.is_completed() or not document.content_text:
            raise ValidationError("Document is not ready for tag generation")

        return await analysis_service.generate_tags(
            document.content_text,
            subject_hint=request.subject_area,
            language_hint=request.language or document.metadata.language,
            max_tags=request.max_tags,
            document_id=document.id,
        )

    except AIGenerationError as e:
        raise _http_error(e, status.HTTP_500_INTERNAL_SERVER_ERROR)
    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Tag generation failed for document {doc_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to generate tags")


# Tag API
@router.post("/tags/generate", response_model=TagGenerationResult)
async def generate_tags(request: TagGenerationRequest, analysis_service: AnalysisServiceDep):
    try:
        if not request.content or not request.content.strip():
            raise ValidationError("Content is required")

        return await analysis_service.generate_tags(
            request.content,
            subject_hint=request.subject_area,
            language_hint=request.language,
            max_tags=request.max_tags,
            document_id=request.document_id,
        )

    except AIGenerationError as e:
        raise _http_error(e, status.HTTP_500_INTERNAL_SERVER_ERROR)
    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Tag generation failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to generate tags")


@router.post("/tags/explain", response_model=TagExplanation)
async def explain_tag(request: TagExplanationRequest, analysis_service: AnalysisServiceDep):
    try:
        return await analysis_service.generate_explanation(
            request.tag_id,
            user_level=request.user_level,
            context=request.context,
        )

    except DidattikaError as e:
        raise _http_error(e, status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception as e:
        logger.error(f"Tag explanation failed for {request.tag_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to generate explanation")


# Chat API
@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, owner_id: CurrentUser, chat_service: ChatServiceDep):
    """Persona chat"""
    try:
        return await chat_service.chat(owner_id, request)

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Chat failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process chat message")


@router.post("/chat/ask-document", response_model=ChatResponse)
async def ask_document(request: DocumentChatRequest, owner_id: CurrentUser, chat_service: ChatServiceDep):
    """Chat grounded in the caller's processed documents."""
    try:
        return await chat_service.ask_document(owner_id, request)

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Document chat failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process document question")


@router.get("/chat/conversations", response_model=ConversationListResponse)
async def list_conversations(
    owner_id: CurrentUser,
    conversation_service: ConversationServiceDep,
    query: Optional[str] = None,
    persona: Optional[PersonaType] = None,
    sort_by: ConversationSortField = ConversationSortField.UPDATED,
    sort_order: SortOrder = SortOrder.DESC,
    limit: int = QueryParam(20, ge=1, le=100),
    offset: int = QueryParam(0, ge=0)
):
    """The caller's conversations, optionally searched by text and persona."""
    try:
        search = ConversationSearch(
            query=query,
            persona=persona,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=offset,
        )
        return await conversation_service.list_conversations(owner_id, search)

    except Exception as e:
        logger.error(f"Failed to list conversations: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list conversations")


@router.post("/chat/conversations", status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: ConversationCreate,
    owner_id: CurrentUser,
    conversation_service: ConversationServiceDep
):
    try:
        conversation = await conversation_service.create_conversation(owner_id, payload)
        return {"conversation": conversation}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to create conversation: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create conversation")


@router.get("/chat/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    owner_id: CurrentUser,
    conversation_service: ConversationServiceDep
):
    try:
        conversation = await conversation_service.get_conversation(conversation_id, owner_id)
        return {"conversation": conversation}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to fetch conversation {conversation_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch conversation")


@router.put("/chat/conversations/{conversation_id}")
async def update_conversation(
    conversation_id: str,
    payload: ConversationUpdate,
    owner_id: CurrentUser,
    conversation_service: ConversationServiceDep
):
    try:
        conversation = await conversation_service.update_conversation(conversation_id, owner_id, payload)
        return {"conversation": conversation}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to update conversation {conversation_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update conversation")


@router.delete("/chat/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    owner_id: CurrentUser,
    conversation_service: ConversationServiceDep
):
    try:
        await conversation_service.delete_conversation(conversation_id, owner_id)
        return {"message": "Conversation deleted successfully"}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to delete conversation {conversation_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete conversation")


# Teacher API
@router.get("/teacher/documents", response_model=TeacherDocumentListResponse)
async def list_teacher_documents(
    teacher_id: CurrentTeacher,
    teacher_service: TeacherServiceDep,
    student_ids: Optional[str] = None,
    course_ids: Optional[str] = None,
    file_types: Optional[str] = None,
    approval_status: Optional[str] = None,
    status: Optional[str] = None,
    search_query: Optional[str] = None,
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
    sort_by: SortField = SortField.DATE,
    sort_order: SortOrder = SortOrder.DESC,
    page: int = QueryParam(1, ge=1),
    limit: int = QueryParam(20, ge=1, le=100)
):
    """Student documents with filters, sorting and a summary of the filtered set."""
    try:
        filters = TeacherDocumentFilters(
            student_ids=_split(student_ids),
            course_ids=_split(course_ids),
            file_types=_split(file_types),
            approval_status=_split(approval_status),
            status=_split(status),
            date_range=_date_range(date_start, date_end),
            search_query=search_query,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        logger.debug(f"Teacher {teacher_id} listing documents")
        return await teacher_service.list_documents(filters, page, limit)

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to list teacher documents: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list documents")


@router.put("/teacher/documents/{doc_id}/approve", response_model=DocumentApprovalResponse)
async def approve_document(
    doc_id: str,
    request: DocumentApprovalRequest,
    teacher_id: CurrentTeacher,
    teacher_service: TeacherServiceDep
):
    try:
        return await teacher_service.approve_document(doc_id, teacher_id, request)

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Approval failed for document {doc_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update approval status")


@router.get("/teacher/dashboard/stats", response_model=TeacherDashboardStats)
async def dashboard_stats(teacher_id: CurrentTeacher, teacher_service: TeacherServiceDep):
    try:
        return await teacher_service.dashboard_stats(teacher_id)

    except Exception as e:
        logger.error(f"Failed to compute dashboard stats: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to compute dashboard stats")


@router.get("/teacher/tags", response_model=TagListResponse)
async def list_tags(
    tag_service: TagServiceDep,
    status: Optional[TagStatus] = None,
    category: Optional[TagCategory] = None,
    limit: int = QueryParam(50, ge=1, le=100)
):
    """Tag catalog with the review status of each tag."""
    try:
        return await tag_service.list_tags(
            status=status.value if status else None,
            category=category.value if category else None,
            limit=limit,
        )

    except Exception as e:
        logger.error(f"Failed to list tags: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch teacher tags")


@router.post("/teacher/tags", status_code=status.HTTP_201_CREATED)
async def create_tag(payload: TagCreate, teacher_id: CurrentTeacher, tag_service: TagServiceDep):
    try:
        tag = await tag_service.create_tag(payload, teacher_id)
        return {"success": True, "tag": tag, "message": "Tag created successfully"}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to create tag: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create tag")


@router.put("/teacher/tags/{tag_id}")
async def update_tag(tag_id: str, payload: TagUpdate, teacher_id: CurrentTeacher, tag_service: TagServiceDep):
    try:
        tag = await tag_service.update_tag(tag_id, payload)
        logger.info(f"Tag {tag_id} updated by teacher {teacher_id}")
        return {"success": True, "tag": tag, "message": "Tag updated successfully"}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to update tag {tag_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update tag")


@router.delete("/teacher/tags/{tag_id}")
async def delete_tag(tag_id: str, teacher_id: CurrentTeacher, tag_service: TagServiceDep):
    try:
        await tag_service.delete_tag(tag_id)
        return {"success": True, "tagId": tag_id, "message": "Tag deleted successfully"}

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to delete tag {tag_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete tag")


@router.get("/teacher/tags/{tag_id}/validate")
async def get_tag_validation(tag_id: str, teacher_id: CurrentTeacher, tag_service: TagServiceDep):
    try:
        return await tag_service.get_tag_validation_info(tag_id)

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Failed to fetch validation info for tag {tag_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch tag validation info")


@router.put("/teacher/tags/{tag_id}/validate", response_model=TagValidationResult)
async def validate_tag(
    tag_id: str,
    request: TagValidationRequest,
    teacher_id: CurrentTeacher,
    tag_service: TagServiceDep
):
    """Approve, reject or modify a tag."""
    try:
        return await tag_service.validate_tag(tag_id, teacher_id, request)

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Tag validation failed for {tag_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to validate tag")


@router.get("/teacher/tags/bulk-action")
async def get_bulk_operations(tag_service: TagServiceDep):
    return tag_service.get_bulk_operations()


@router.post("/teacher/tags/bulk-action", response_model=BulkOperationResult)
async def bulk_tag_action(
    request: BulkTagOperation,
    teacher_id: CurrentTeacher,
    tag_service: TagServiceDep
):
    try:
        return await tag_service.bulk_action(request, teacher_id)

    except DidattikaError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Bulk tag operation failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to perform bulk operation")


# Persona API
@router.get("/personas")
async def list_personas():
    """Persona catalog without system prompts."""
    return {"personas": [persona.public_view() for persona in get_all_personas()]}


@router.get("/personas/{persona_type}/prompts")
async def get_persona_prompts(persona_type: str):
    try:
        persona = get_persona_config(persona_type)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid persona type")

    return {
        "persona": persona.id,
        "prompt": persona.prompt,
        "characteristics": persona.characteristics,
    }


# System API
@router.get("/system/performance")
async def get_performance_metrics():
    """Operation timings"""
    try:
        return performance_monitor.get_metrics()

    except Exception as e:
        logger.error(f"Failed to read performance metrics: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to read performance metrics")


@router.post("/system/performance/reset")
async def reset_performance_metrics():
    performance_monitor.reset_metrics()
    return {"message": "Performance metrics reset"}
