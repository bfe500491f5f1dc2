"""Data models"""

from .base import BaseDataModel, CamelModel
from .document import (
    Document,
    DocumentMetadata,
    DocumentStatus,
    ApprovalStatus,
    FileType,
    DocumentCreate,
    DocumentFilters,
    DocumentListResponse,
    DocumentUploadResponse,
    DateRange,
    UploadValidationResult,
)
from .teacher import (
    DocumentReview,
    TeacherDocument,
    TeacherDocumentFilters,
    TeacherDocumentListResponse,
    AnalyticsSummary,
    ApprovalAction,
    ApprovalRecord,
    DocumentApprovalRequest,
    DocumentApprovalResponse,
    SortField,
    SortOrder,
    TeacherDashboardStats,
)
from .persona import PersonaType, PersonaConfig
from .conversation import (
    Message,
    Conversation,
    ConversationCreate,
    ConversationUpdate,
    ConversationSearch,
    ConversationSortField,
    ConversationListResponse,
    ChatRequest,
    ChatResponse,
    DocumentChatRequest,
)
from .tag import (
    Tag,
    TagCategory,
    GeneratedTag,
    TagGenerationRequest,
    TagGenerationResult,
    TagExplanation,
    TagExplanationRequest,
    TagValidation,
    TagValidationRequest,
    TagValidationResult,
    AITagFeedback,
    BulkTagOperation,
    BulkOperationResult,
    FeedbackType,
    ValidationAction,
    TagStatus,
    TagCreate,
    TagUpdate,
    TagListItem,
    TagListResponse,
)

__all__ = [
    "BaseDataModel",
    "CamelModel",
    "Document",
    "DocumentMetadata",
    "DocumentStatus",
    "ApprovalStatus",
    "FileType",
    "DocumentCreate",
    "DocumentFilters",
    "DocumentListResponse",
    "DocumentUploadResponse",
    "DateRange",
    "UploadValidationResult",
    "DocumentReview",
    "TeacherDocument",
    "TeacherDocumentFilters",
    "TeacherDocumentListResponse",
    "AnalyticsSummary",
    "ApprovalAction",
    "ApprovalRecord",
    "DocumentApprovalRequest",
    "DocumentApprovalResponse",
    "SortField",
    "SortOrder",
    "TeacherDashboardStats",
    "PersonaType",
    "PersonaConfig",
    "Message",
    "Conversation",
    "ConversationCreate",
    "ConversationUpdate",
    "ConversationSearch",
    "ConversationSortField",
    "ConversationListResponse",
    "ChatRequest",
    "ChatResponse",
    "DocumentChatRequest",
    "Tag",
    "TagCategory",
    "GeneratedTag",
    "TagGenerationRequest",
    "TagGenerationResult",
    "TagExplanation",
    "TagExplanationRequest",
    "TagValidation",
    "TagValidationRequest",
    "TagValidationResult",
    "AITagFeedback",
    "BulkTagOperation",
    "BulkOperationResult",
    "FeedbackType",
    "ValidationAction",
    "TagStatus",
    "TagCreate",
    "TagUpdate",
    "TagListItem",
    "TagListResponse",
]
