"""Teacher feedback collection for the tag generator"""

from typing import Any, Dict, List, Optional

from didattika.models.tag import (
    AITagFeedback,
    FeedbackType,
    Tag,
    TagPrediction,
    TagValidation,
    TeacherCorrection,
)
from didattika.utils.logger import LoggerMixin

FEEDBACK_KIND = {
    FeedbackType.APPROVED.value: "enhancement",
    FeedbackType.REJECTED.value: "rejection",
}

IMPACT_BASE = {
    FeedbackType.APPROVED.value: 0.1,
    FeedbackType.REJECTED.value: 0.8,
    FeedbackType.MODIFIED.value: 0.5,
    FeedbackType.FLAGGED.value: 0.3,
}
CONFIDENCE_WEIGHT = 0.3


class TeacherFeedbackService(LoggerMixin):
    """Turns tag validations into feedback records kept in memory."""

    def __init__(self):
        self.feedback_log: List[AITagFeedback] = []

    @staticmethod
    def determine_feedback_type(feedback_type: str) -> str:
        return FEEDBACK_KIND.get(feedback_type, "correction")

    @staticmethod
    def calculate_improvement_impact(validation: TagValidation) -> float:
        """Rejections and low-confidence tags teach the generator the most."""
        base = IMPACT_BASE.get(validation.feedback_type, 0.5)
        return min(base + (1 - validation.confidence) * CONFIDENCE_WEIGHT, 1.0)

    async def submit_tag_feedback(
        self,
        tag: Tag,
        validation: TagValidation,
        context: Dict[str, Any]
    ) -> AITagFeedback:
        feedback = AITagFeedback(
            tag_id=tag.id,
            teacher_id=validation.teacher_id,
            original_prediction=TagPrediction(
                name=tag.name,
                description=tag.description or "",
                category=tag.category,
                confidence=tag.confidence,
            ),
            teacher_correction=TeacherCorrection(
                name=validation.validated_name,
                description=validation.validated_description or "",
                category=tag.category,
                feedback=validation.feedback or "",
            ),
            feedback_type=self.determine_feedback_type(validation.feedback_type),
            subject_area=str(context.get("subjectArea", tag.category)),
            contextual_factors=context,
            improvement_impact=self.calculate_improvement_impact(validation),
        )

        self.feedback_log.append(feedback)
        self.logger.info(
            "Tag feedback recorded",
            tag_id=feedback.tag_id,
            teacher_id=feedback.teacher_id,
            feedback_type=feedback.feedback_type,
            improvement_impact=feedback.improvement_impact,
        )
        return feedback

    def get_feedback(self, tag_id: Optional[str] = None) -> List[AITagFeedback]:
        return [fb for fb in self.feedback_log if tag_id is None or fb.tag_id == tag_id]
