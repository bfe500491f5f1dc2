"""Teacher review models: document projection, filters, approval audit trail"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .base import BaseDataModel, prefixed_id, utc_now
from .document import ApprovalStatus, DateRange, Document


class SortField(str, Enum):
    DATE = "date"
    STUDENT = "student"
    NAME = "name"
    SIZE = "size"
    INTERACTIONS = "interactions"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    FLAG = "flag"
    REJECT = "reject"

    def resulting_status(self) -> ApprovalStatus:
        return {
            ApprovalAction.APPROVE: ApprovalStatus.APPROVED,
            ApprovalAction.FLAG: ApprovalStatus.FLAGGED,
            ApprovalAction.REJECT: ApprovalStatus.REJECTED,
        }[self]


class DocumentReview(BaseDataModel):
    """Teacher-side state for a document, keyed by the document id"""

    student_id: Optional[str] = None
    student_name: Optional[str] = None
    course_id: Optional[str] = None
    course_name: Optional[str] = None
    last_viewed_by_teacher: Optional[datetime] = None
    teacher_feedback: Optional[str] = None
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    approval_date: Optional[datetime] = None
    interaction_count: int = Field(default=0, ge=0)
    ai_queries_count: int = Field(default=0, ge=0)


class TeacherDocument(Document):
    """Document as seen from the teacher dashboard"""

    student_name: str
    student_id: str
    course_id: Optional[str] = None
    course_name: Optional[str] = None
    last_viewed_by_teacher: Optional[datetime] = None
    teacher_feedback: Optional[str] = None
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    approval_date: Optional[datetime] = None
    interaction_count: int = Field(default=0, ge=0)
    ai_queries_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_approval_date(self) -> "TeacherDocument":
        pending = self.approval_status == ApprovalStatus.PENDING
        if pending and self.approval_date is not None:
            raise ValueError("approval_date must be empty while approval is pending")
        if not pending and self.approval_date is None:
            raise ValueError("approval_date is required once a document has been reviewed")
        return self


class TeacherDocumentFilters(BaseModel):
    student_ids: Optional[List[str]] = None
    course_ids: Optional[List[str]] = None
    file_types: Optional[List[str]] = None
    approval_status: Optional[List[str]] = None
    status: Optional[List[str]] = None
    date_range: Optional[DateRange] = None
    search_query: Optional[str] = None
    sort_by: SortField = SortField.DATE
    sort_order: SortOrder = SortOrder.DESC


class AnalyticsSummary(BaseModel):
    total_students: int = 0
    pending_approvals: int = 0
    flagged_documents: int = 0
    recent_uploads: int = 0


class TeacherDocumentListResponse(BaseModel):
    documents: List[TeacherDocument]
    total: int
    page: int
    limit: int
    filters_applied: TeacherDocumentFilters
    analytics_summary: AnalyticsSummary


class DocumentApprovalRequest(BaseModel):
    action: Optional[str] = None
    reason: Optional[str] = None
    feedback: Optional[str] = None


class ApprovalRecord(BaseModel):
    """Audit log entry for a teacher approval action"""
    id: str = Field(default_factory=lambda: prefixed_id("approval"))
    document_id: str
    teacher_id: str
    action: ApprovalAction
    reason: Optional[str] = None
    feedback: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class DocumentApprovalResponse(BaseModel):
    message: str
    approval_status: ApprovalStatus
    approval_date: datetime


class CourseActivity(BaseModel):
    id: str
    name: str
    student_count: int
    document_count: int


class TeacherDashboardStats(BaseModel):
    students_count: int
    total_documents: int
    pending_reviews: int
    flagged_content: int
    this_week_uploads: int
    ai_interactions: int
    most_active_course: Optional[CourseActivity] = None
