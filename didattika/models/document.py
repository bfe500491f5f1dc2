"""Document-related data models"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import BaseDataModel, ensure_utc, prefixed_id


class DocumentStatus(str, Enum):
    """Processing lifecycle of a document"""
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DELETED = "deleted"


class ApprovalStatus(str, Enum):
    """Teacher-side review state, independent of processing status"""
    PENDING = "pending"
    APPROVED = "approved"
    FLAGGED = "flagged"
    REJECTED = "rejected"


class FileType(str, Enum):
    PDF = "pdf"
    TXT = "txt"
    DOCX = "docx"


class DocumentMetadata(BaseModel):
    """Extraction results and processing diagnostics"""

    model_config = ConfigDict(extra="allow")

    original_filename: Optional[str] = None
    pages: Optional[int] = Field(None, ge=0)
    word_count: Optional[int] = Field(None, ge=0)
    language: Optional[str] = None
    encoding: Optional[str] = None
    extraction_method: Optional[str] = None
    processing_time: Optional[float] = Field(None, ge=0.0, description="Seconds")
    error_log: List[str] = Field(default_factory=list)


class Document(BaseDataModel):
    """A student document and its processing state"""

    id: str = Field(default_factory=lambda: prefixed_id("doc"))
    user_id: str = Field(..., description="Owning student")
    teacher_id: Optional[str] = None
    title: str
    file_path: str = ""
    file_type: FileType
    file_size: int = Field(..., gt=0, description="Bytes")
    content_text: Optional[str] = None
    summary: Optional[str] = None
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    status: DocumentStatus = DocumentStatus.UPLOADING
    approval_status: Optional[ApprovalStatus] = None
    teacher_notes: Optional[str] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or len(v.strip()) == 0:
            raise ValueError("Title must not be empty")
        return v.strip()

    def is_deleted(self) -> bool:
        return self.status == DocumentStatus.DELETED

    def is_completed(self) -> bool:
        return self.status == DocumentStatus.COMPLETED

    def record_error(self, reason: str) -> None:
        self.metadata.error_log.append(reason)


class DocumentCreate(BaseModel):
    """Payload for creating a document record directly"""
    title: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    content_text: Optional[str] = None
    summary: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class DateRange(BaseModel):
    start: datetime
    end: datetime

    @field_validator('start', 'end')
    @classmethod
    def validate_bound(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    def contains(self, value: datetime) -> bool:
        """Inclusive on both bounds."""
        return self.start <= ensure_utc(value) <= self.end


class DocumentFilters(BaseModel):
    """Filters accepted by the student document listing"""
    file_type: Optional[List[str]] = None
    status: Optional[List[str]] = None
    search_query: Optional[str] = None
    date_range: Optional[DateRange] = None


class DocumentListResponse(BaseModel):
    documents: List[Document]
    total: int
    page: int
    limit: int
    filters_applied: DocumentFilters


class DocumentUploadResponse(BaseModel):
    document_id: str
    status: DocumentStatus
    message: str
    warnings: List[str] = Field(default_factory=list)


class UploadFileInfo(BaseModel):
    size: int
    type: Optional[str] = None
    name: Optional[str] = None


class UploadValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    file_info: Optional[UploadFileInfo] = None
    file_type: Optional[str] = None
