"""Teacher validation of catalogued tags"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from didattika.models.tag import (
    BulkFailure,
    BulkOperationResult,
    BulkSummary,
    BulkTagOperation,
    FeedbackType,
    Tag,
    TagCategory,
    TagCreate,
    TagListItem,
    TagListResponse,
    TagStatus,
    TagUpdate,
    TagValidation,
    TagValidationRequest,
    TagValidationResult,
    ValidationAction,
)
from didattika.models.base import prefixed_id
from didattika.services.feedback_service import TeacherFeedbackService
from didattika.services.filters import in_values
from didattika.services.store import InMemoryStore, RecordStore
from didattika.utils.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_BULK_TAGS = 100
DEFAULT_TAG_LIST_LIMIT = 50

VALIDATION_MESSAGES = {
    ValidationAction.APPROVE: "Tag approved successfully. This will improve AI accuracy for similar content.",
    ValidationAction.REJECT: "Tag rejected successfully. The AI will learn to avoid similar suggestions.",
    ValidationAction.MODIFY: "Tag modified successfully. The AI will learn from your improvements.",
}

BULK_OPERATIONS: Dict[str, Dict[str, Any]] = {
    "approve": {
        "description": "Approve multiple tags at once",
        "requires": ["tagIds"],
        "optional": ["reason"],
        "past": "approved",
    },
    "reject": {
        "description": "Reject multiple tags at once",
        "requires": ["tagIds"],
        "optional": ["reason"],
        "past": "rejected",
    },
    "modify": {
        "description": "Modify multiple tags with the same changes",
        "requires": ["tagIds", "newValues"],
        "optional": ["reason"],
        "past": "modified",
    },
    "delete": {
        "description": "Delete multiple tags at once",
        "requires": ["tagIds"],
        "optional": ["reason"],
        "past": "deleted",
    },
    "merge": {
        "description": "Merge multiple tags into a single tag",
        "requires": ["tagIds", "mergeTargetId"],
        "optional": ["reason"],
        "past": "merged",
    },
}

FEEDBACK_CONTEXT = {
    "documentType": "educational_content",
    "studentLevel": "K-12",
    "curriculumContext": "general",
}


def seed_tags() -> List[Tag]:
    def day(month: int, dd: int) -> datetime:
        return datetime(2024, month, dd, tzinfo=timezone.utc)

    return [
        Tag(
            id="tag-1",
            name="Mathematics",
            description="Mathematical concepts and problems",
            category=TagCategory.SUBJECT,
            confidence=0.85,
            usage_count=15,
            created_at=day(1, 15),
            synonyms=["Math", "Arithmetic"],
        ),
        Tag(
            id="tag-2",
            name="Science",
            description="Scientific concepts and experiments",
            category=TagCategory.SUBJECT,
            confidence=0.78,
            usage_count=12,
            created_at=day(1, 10),
            synonyms=["Natural Science"],
        ),
        Tag(
            id="tag-3",
            name="Literature",
            description="Literary works and analysis",
            category=TagCategory.SUBJECT,
            confidence=0.82,
            usage_count=8,
            created_at=day(1, 12),
            synonyms=["English Literature"],
        ),
    ]


def bulk_message(operation: str, succeeded: int, failed: int) -> str:
    past = BULK_OPERATIONS.get(operation, {}).get("past", "processed")
    plural = "" if succeeded == 1 else "s"
    if failed == 0:
        return f"Successfully {past} {succeeded} tag{plural}."
    if succeeded == 0:
        return f"Failed to {operation} all tags. Please check the error details."
    return f"{past.capitalize()} {succeeded} tag{plural} successfully. {failed} failed."


class TagValidationService:
    """Approve, reject or rewrite tags and pass the verdicts on as feedback"""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        feedback_service: Optional[TeacherFeedbackService] = None
    ):
        self.store: RecordStore = store if store is not None else InMemoryStore(seed_tags())
        self.feedback_service = feedback_service or TeacherFeedbackService()
        self.validations: List[TagValidation] = []

    async def get_tag(self, tag_id: str) -> Tag:
        tag = await self.store.get(tag_id)
        if tag is None:
            raise NotFoundError("Tag not found")
        return tag

    def _record_validation(
        self,
        tag: Tag,
        teacher_id: str,
        feedback_type: FeedbackType,
        new_name: Optional[str] = None,
        new_description: Optional[str] = None,
        feedback: Optional[str] = None,
        reason_for_change: Optional[str] = None
    ) -> TagValidation:
        validation = TagValidation(
            tag_id=tag.id,
            teacher_id=teacher_id,
            original_name=tag.name,
            validated_name=new_name or tag.name,
            original_description=tag.description,
            validated_description=new_description or tag.description,
            feedback_type=feedback_type,
            feedback=feedback,
            confidence=tag.confidence,
            reason_for_change=reason_for_change,
        )
        self.validations.append(validation)
        return validation

    async def _apply_changes(self, tag_id: str, changes: Dict[str, Any]) -> Tag:
        changes = {key: value for key, value in changes.items() if value}
        if not changes:
            return await self.get_tag(tag_id)
        try:
            updated = await self.store.update(tag_id, changes)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid tag values: {e.errors()[0]['msg']}") from e
        if updated is None:
            raise NotFoundError("Tag not found")
        return updated

    async def validate_tag(
        self,
        tag_id: str,
        teacher_id: str,
        request: TagValidationRequest
    ) -> TagValidationResult:
        try:
            action = ValidationAction(request.action)
        except ValueError:
            raise ValidationError("Invalid action. Must be approve, reject, or modify")

        original = await self.get_tag(tag_id)

        validation = self._record_validation(
            original,
            teacher_id,
            action.feedback_type(),
            new_name=request.new_name,
            new_description=request.new_description,
            feedback=request.feedback,
            reason_for_change=request.reason_for_change,
        )

        updated_tag = original
        if action == ValidationAction.MODIFY:
            updated_tag = await self._apply_changes(tag_id, {
                "name": request.new_name,
                "description": request.new_description,
                "category": request.new_category,
            })

        ai_feedback = None
        try:
            ai_feedback = await self.feedback_service.submit_tag_feedback(
                original,
                validation,
                {**FEEDBACK_CONTEXT, "subjectArea": request.new_category or original.category},
            )
        except Exception as e:
            logger.error(f"Error submitting tag feedback for {tag_id}: {str(e)}")

        logger.info(f"Tag {tag_id} {validation.feedback_type} by teacher {teacher_id}")

        return TagValidationResult(
            success=True,
            validation=validation,
            ai_feedback=ai_feedback,
            message=VALIDATION_MESSAGES[action],
            updated_tag=updated_tag,
        )

    async def get_tag_validation_info(self, tag_id: str) -> Dict[str, Any]:
        tag = await self.get_tag(tag_id)
        history = [v for v in self.validations if v.tag_id == tag_id]
        return {
            "tag": tag,
            "validationHistory": history,
            "canValidate": True,
        }

    def tag_status(self, tag: Tag) -> TagStatus:
        """Latest verdict wins; hand-made tags count as approved until reviewed."""
        for validation in reversed(self.validations):
            if validation.tag_id == tag.id:
                return TagStatus(validation.feedback_type)
        return TagStatus.APPROVED if tag.created_by else TagStatus.PENDING

    async def list_tags(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = DEFAULT_TAG_LIST_LIMIT
    ) -> TagListResponse:
        items = [
            TagListItem(**tag.model_dump(), status=self.tag_status(tag))
            for tag in await self.store.list()
        ]
        items = [
            item for item in items
            if in_values(item.status, [status] if status else None)
            and in_values(item.category, [category] if category else None)
        ]
        return TagListResponse(tags=items[:limit], total=len(items), has_more=len(items) > limit)

    async def _check_unique_name(self, name: str, tag_id: Optional[str] = None) -> None:
        wanted = name.casefold()
        clash = await self.store.list(lambda tag: tag.id != tag_id and tag.name.casefold() == wanted)
        if clash:
            raise ValidationError("A tag with this name already exists")

    async def create_tag(self, payload: TagCreate, teacher_id: str) -> Tag:
        name = (payload.name or "").strip()
        if not name:
            raise ValidationError("Tag name is required")
        await self._check_unique_name(name)

        tag = Tag(
            id=prefixed_id("tag"),
            name=name,
            description=payload.description,
            category=payload.category,
            confidence=payload.confidence,
            synonyms=payload.synonyms,
            created_by=teacher_id,
        )
        created = await self.store.create(tag)
        logger.info(f"Tag {created.id} ({created.name}) created by teacher {teacher_id}")
        return created

    async def update_tag(self, tag_id: str, payload: TagUpdate) -> Tag:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if not changes["name"]:
                raise ValidationError("Tag name is required")
            await self._check_unique_name(changes["name"], tag_id)

        try:
            updated = await self.store.update(tag_id, changes)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid tag values: {e.errors()[0]['msg']}") from e
        if updated is None:
            raise NotFoundError("Tag not found")
        return updated

    async def delete_tag(self, tag_id: str) -> None:
        if not await self.store.delete(tag_id):
            raise NotFoundError("Tag not found")
        logger.info(f"Tag {tag_id} deleted")

    @staticmethod
    def get_bulk_operations() -> Dict[str, Any]:
        return {
            "operations": {
                name: {key: value for key, value in details.items() if key != "past"}
                for name, details in BULK_OPERATIONS.items()
            },
            "limits": {"maxTagsPerOperation": MAX_BULK_TAGS},
        }

    def _check_bulk_request(self, operation: BulkTagOperation) -> None:
        if not operation.tag_ids:
            raise ValidationError("Tag IDs are required")
        if not operation.operation:
            raise ValidationError("Operation type is required")
        if operation.operation not in BULK_OPERATIONS:
            raise ValidationError(f"Invalid operation. Must be one of: {', '.join(BULK_OPERATIONS)}")
        if operation.operation == "modify" and not operation.new_values:
            raise ValidationError("New values required for modify operation")
        if operation.operation == "merge" and not operation.merge_target_id:
            raise ValidationError("Merge target ID required for merge operation")
        if len(operation.tag_ids) > MAX_BULK_TAGS:
            raise ValidationError(f"Cannot perform bulk operation on more than {MAX_BULK_TAGS} tags at once")

    async def _merge_into(self, tag: Tag, target_id: str) -> None:
        if tag.id == target_id:
            raise ValueError("Cannot merge a tag into itself")

        def absorb(target: Tag) -> Tag:
            synonyms = list(dict.fromkeys(target.synonyms + [tag.name] + tag.synonyms))
            target.synonyms = [name for name in synonyms if name != target.name]
            target.usage_count += tag.usage_count
            return target

        merged = await self.store.apply(target_id, absorb)
        if merged is None:
            raise ValueError(f"Merge target not found: {target_id}")
        await self.store.delete(tag.id)

    async def bulk_action(self, operation: BulkTagOperation, teacher_id: str) -> BulkOperationResult:
        """Apply one operation to many tags; per-tag failures do not stop the batch."""
        self._check_bulk_request(operation)

        successful: List[str] = []
        failed: List[BulkFailure] = []
        validations: List[TagValidation] = []
        new_values = operation.new_values or {}

        for tag_id in operation.tag_ids:
            try:
                tag = await self.get_tag(tag_id)

                if operation.operation == "approve":
                    validations.append(self._record_validation(
                        tag, teacher_id, FeedbackType.APPROVED,
                        feedback=operation.reason or "Bulk approval",
                    ))
                elif operation.operation == "reject":
                    validations.append(self._record_validation(
                        tag, teacher_id, FeedbackType.REJECTED,
                        feedback=operation.reason or "Bulk rejection",
                    ))
                elif operation.operation == "modify":
                    await self._apply_changes(tag_id, {
                        "name": new_values.get("name"),
                        "description": new_values.get("description"),
                        "category": new_values.get("category"),
                    })
                    validations.append(self._record_validation(
                        tag, teacher_id, FeedbackType.MODIFIED,
                        new_name=new_values.get("name"),
                        new_description=new_values.get("description"),
                        feedback=operation.reason or "Bulk modification",
                        reason_for_change=operation.reason,
                    ))
                elif operation.operation == "delete":
                    await self.store.delete(tag_id)
                elif operation.operation == "merge":
                    await self._merge_into(tag, operation.merge_target_id)

                successful.append(tag_id)

            except (NotFoundError, ValidationError, ValueError) as e:
                message = e.message if hasattr(e, "message") else str(e)
                failed.append(BulkFailure(tag_id=tag_id, error=message))

        total = len(operation.tag_ids)
        logger.info(
            f"Bulk {operation.operation} by {teacher_id}: {len(successful)}/{total} succeeded"
        )

        return BulkOperationResult(
            success=not failed,
            operation=operation.operation,
            summary=BulkSummary(
                total=total,
                successful=len(successful),
                failed=len(failed),
                success_rate=round(len(successful) / total * 100) if total else 0,
            ),
            successful=successful,
            failed=failed,
            validations=validations,
            message=bulk_message(operation.operation, len(successful), len(failed)),
        )
