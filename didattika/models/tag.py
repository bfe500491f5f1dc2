"""Tag models: analyzer output, teacher validation and feedback records"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base import CamelModel, prefixed_id, utc_now


class TagCategory(str, Enum):
    CONCEPT = "concept"
    SKILL = "skill"
    TOPIC = "topic"
    KEYWORD = "keyword"
    METHOD = "method"
    THEORY = "theory"
    APPLICATION = "application"
    PERSON = "person"
    DATE = "date"
    LOCATION = "location"
    SUBJECT = "subject"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class FeedbackType(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"
    FLAGGED = "flagged"


class TagStatus(str, Enum):
    """Catalog state derived from the latest teacher verdict"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"
    FLAGGED = "flagged"


class ValidationAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"

    def feedback_type(self) -> FeedbackType:
        return {
            ValidationAction.APPROVE: FeedbackType.APPROVED,
            ValidationAction.REJECT: FeedbackType.REJECTED,
            ValidationAction.MODIFY: FeedbackType.MODIFIED,
        }[self]


class Tag(CamelModel):
    """Catalogued tag as managed by teachers"""
    id: str
    name: str
    description: Optional[str] = None
    category: TagCategory
    confidence: float = Field(..., ge=0.0, le=1.0)
    usage_count: int = Field(default=0, ge=0)
    synonyms: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = Field(None, description="Teacher who added the tag by hand")


class TagCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: TagCategory = TagCategory.KEYWORD
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    synonyms: List[str] = Field(default_factory=list)


class TagUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[TagCategory] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    synonyms: Optional[List[str]] = None


class TagListItem(Tag):
    status: TagStatus


class TagListResponse(CamelModel):
    tags: List[TagListItem]
    total: int
    has_more: bool


class GeneratedTag(BaseModel):
    """Tag proposed by the content analyzer for a piece of text"""
    name: str
    display_name: str
    description: str
    category: TagCategory
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    frequency: int = Field(default=0, ge=0)
    difficulty_level: DifficultyLevel
    subject_area: str
    language: str
    color: str
    icon: str
    position_references: List[int] = Field(default_factory=list)
    context_snippet: str = ""
    relevance_score: float = Field(..., ge=0.0, le=1.0)


class TagGenerationRequest(BaseModel):
    content: Optional[str] = None
    subject_area: Optional[str] = None
    language: Optional[str] = None
    max_tags: Optional[int] = Field(None, ge=1)
    document_id: Optional[str] = None


class TagGenerationResult(BaseModel):
    document_id: Optional[str] = None
    generated_tags: List[GeneratedTag]
    processing_time: float
    language_detected: str
    subject_area_detected: str


class TagExplanationRequest(BaseModel):
    tag_id: str
    user_level: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    context: Optional[str] = None
    learning_objective: Optional[str] = None


class FurtherReading(BaseModel):
    title: str
    description: str


class TagExplanation(BaseModel):
    tag_id: str
    definition: str
    detailed_explanation: str
    examples: List[str]
    key_points: List[str]
    prerequisites: List[str] = Field(default_factory=list)
    related_concepts: List[str] = Field(default_factory=list)
    study_tips: List[str]
    further_reading: List[FurtherReading]
    difficulty_explanation: str


class TagValidation(CamelModel):
    """Teacher verdict on a tag"""
    id: str = Field(default_factory=lambda: prefixed_id("validation"))
    tag_id: str
    teacher_id: str
    original_name: str
    validated_name: str
    original_description: Optional[str] = None
    validated_description: Optional[str] = None
    feedback_type: FeedbackType
    feedback: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=utc_now)
    reason_for_change: Optional[str] = None


class TagValidationRequest(CamelModel):
    action: Optional[str] = None
    new_name: Optional[str] = None
    new_description: Optional[str] = None
    new_category: Optional[TagCategory] = None
    feedback: Optional[str] = None
    reason_for_change: Optional[str] = None


class TagPrediction(CamelModel):
    name: str
    description: str
    category: TagCategory
    confidence: float


class TeacherCorrection(CamelModel):
    name: str
    description: str
    category: TagCategory
    feedback: str


class AITagFeedback(CamelModel):
    """Teacher feedback packaged for the tag-generation learning loop"""
    id: str = Field(default_factory=lambda: prefixed_id("feedback"))
    tag_id: str
    teacher_id: str
    original_prediction: TagPrediction
    teacher_correction: TeacherCorrection
    feedback_type: str = Field(..., description="correction, enhancement or rejection")
    subject_area: str
    contextual_factors: Dict[str, Any] = Field(default_factory=dict)
    improvement_impact: float = Field(..., ge=0.0, le=1.0)
    submitted_at: datetime = Field(default_factory=utc_now)


class TagValidationResult(CamelModel):
    success: bool
    validation: TagValidation
    ai_feedback: Optional[AITagFeedback] = None
    message: str
    updated_tag: Tag


class BulkTagOperation(CamelModel):
    operation: Optional[str] = None
    tag_ids: List[str] = Field(default_factory=list)
    new_values: Optional[Dict[str, Any]] = None
    merge_target_id: Optional[str] = None
    reason: Optional[str] = None


class BulkFailure(CamelModel):
    tag_id: str
    error: str


class BulkSummary(CamelModel):
    total: int
    successful: int
    failed: int
    success_rate: int


class BulkOperationResult(CamelModel):
    success: bool
    operation: str
    summary: BulkSummary
    successful: List[str]
    failed: List[BulkFailure]
    validations: List[TagValidation]
    message: str
