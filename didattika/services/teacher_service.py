"""Teacher review layer: filtered view over student documents, approvals, dashboard figures"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from didattika.config.settings import get_settings
from didattika.models.base import utc_now
from didattika.models.document import ApprovalStatus, Document, DocumentStatus
from didattika.models.teacher import (
    AnalyticsSummary,
    ApprovalAction,
    ApprovalRecord,
    CourseActivity,
    DocumentApprovalRequest,
    DocumentApprovalResponse,
    DocumentReview,
    SortField,
    SortOrder,
    TeacherDashboardStats,
    TeacherDocument,
    TeacherDocumentFilters,
    TeacherDocumentListResponse,
)
from didattika.services.filters import collation_key, in_date_range, in_values, matches_search, paginate
from didattika.services.store import InMemoryStore, RecordStore
from didattika.utils.exceptions import NotFoundError, ValidationError
from didattika.utils.performance import monitor_performance

logger = logging.getLogger(__name__)
settings = get_settings()

INVALID_ACTION_MESSAGE = "Invalid action. Must be 'approve', 'flag', or 'reject'"

ACTION_PAST_TENSE = {
    ApprovalAction.APPROVE: "approved",
    ApprovalAction.FLAG: "flagged",
    ApprovalAction.REJECT: "rejected",
}

SORT_KEYS: Dict[SortField, Callable[[TeacherDocument], object]] = {
    SortField.DATE: lambda doc: doc.created_at,
    SortField.STUDENT: lambda doc: collation_key(doc.student_name),
    SortField.NAME: lambda doc: collation_key(doc.title),
    SortField.SIZE: lambda doc: doc.file_size,
    SortField.INTERACTIONS: lambda doc: doc.interaction_count,
}


def _at(year: int, month: int, day: int, hour: int, minute: int) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def seed_documents() -> List[TeacherDocument]:
    """Sample submissions the dashboard starts with."""
    return [
        TeacherDocument(
            id="doc-1",
            user_id="student-1",
            student_id="student-1",
            student_name="Marco Rossi",
            course_id="course-1",
            course_name="Matematica Avanzata",
            title="Appunti di Calcolo Differenziale",
            file_path="/uploads/student-1/calcolo.pdf",
            file_type="pdf",
            file_size=2845760,
            content_text="Contenuto del documento sui calcoli differenziali...",
            summary="Appunti completi sul calcolo differenziale con esempi pratici e esercizi risolti.",
            status=DocumentStatus.COMPLETED,
            approval_status=ApprovalStatus.PENDING,
            interaction_count=24,
            ai_queries_count=12,
            created_at=_at(2024, 12, 26, 10, 30),
            updated_at=_at(2024, 12, 28, 15, 45),
            metadata={
                "original_filename": "calcolo_differenziale.pdf",
                "pages": 45,
                "word_count": 12500,
                "language": "it",
                "extraction_method": "pypdf2",
            },
        ),
        TeacherDocument(
            id="doc-2",
            user_id="student-2",
            student_id="student-2",
            student_name="Sofia Bianchi",
            course_id="course-2",
            course_name="Storia Contemporanea",
            title="La Prima Guerra Mondiale",
            file_path="/uploads/student-2/wwi.docx",
            file_type="docx",
            file_size=1024000,
            content_text="Analisi dettagliata degli eventi della Prima Guerra Mondiale...",
            summary="Ricerca approfondita sulle cause, lo sviluppo e le conseguenze della Prima Guerra Mondiale.",
            status=DocumentStatus.COMPLETED,
            approval_status=ApprovalStatus.APPROVED,
            approval_date=_at(2024, 12, 27, 14, 20),
            interaction_count=18,
            ai_queries_count=8,
            teacher_feedback="Ottimo lavoro, molto dettagliato e ben strutturato.",
            created_at=_at(2024, 12, 25, 16, 0),
            updated_at=_at(2024, 12, 27, 14, 20),
            metadata={
                "original_filename": "prima_guerra_mondiale.docx",
                "word_count": 8900,
                "language": "it",
                "extraction_method": "python-docx",
            },
        ),
        TeacherDocument(
            id="doc-3",
            user_id="student-3",
            student_id="student-3",
            student_name="Alessandro Neri",
            course_id="course-3",
            course_name="Scienze Naturali",
            title="Ricerca sui cambiamenti climatici",
            file_path="/uploads/student-3/climate.txt",
            file_type="txt",
            file_size=512000,
            content_text="Contenuto copiato da Wikipedia sui cambiamenti climatici...",
            summary="Testo sui cambiamenti climatici con possibili contenuti non originali.",
            status=DocumentStatus.COMPLETED,
            approval_status=ApprovalStatus.FLAGGED,
            approval_date=_at(2024, 12, 28, 9, 15),
            interaction_count=5,
            ai_queries_count=2,
            teacher_feedback="Contenuto sospetto, possibile plagio da fonti online.",
            created_at=_at(2024, 12, 27, 11, 45),
            updated_at=_at(2024, 12, 28, 9, 15),
            metadata={
                "original_filename": "cambiamenti_climatici.txt",
                "word_count": 3200,
                "language": "it",
                "extraction_method": "text-reader",
            },
        ),
    ]


def split_document(doc: TeacherDocument) -> Tuple[Document, DocumentReview]:
    """Separate a dashboard record into the stored document and its review state."""
    document = Document.model_validate(doc.model_dump(include=set(Document.model_fields)))
    review = DocumentReview.model_validate(
        doc.model_dump(include=set(DocumentReview.model_fields) - {"created_at", "updated_at"})
    )
    return document, review


def seed_student_documents() -> List[Document]:
    return [split_document(doc)[0] for doc in seed_documents()]


def seed_reviews() -> List[DocumentReview]:
    return [split_document(doc)[1] for doc in seed_documents()]


def project(document: Document, review: Optional[DocumentReview] = None) -> TeacherDocument:
    """Teacher view of a stored document; unreviewed documents are pending."""
    review = review or DocumentReview(id=document.id)
    data = document.model_dump()
    data.update(review.model_dump(exclude={"id", "created_at", "updated_at"}))
    data["student_id"] = review.student_id or document.user_id
    data["student_name"] = review.student_name or document.user_id
    return TeacherDocument.model_validate(data)


def matches_filters(doc: TeacherDocument, filters: TeacherDocumentFilters) -> bool:
    """Conjunction of every supplied filter."""
    return (
        in_values(doc.student_id, filters.student_ids)
        and in_values(doc.course_id, filters.course_ids)
        and in_values(doc.file_type, filters.file_types)
        and in_values(doc.approval_status, filters.approval_status)
        and in_values(doc.status, filters.status)
        and in_date_range(doc.created_at, filters.date_range)
        and matches_search(
            filters.search_query,
            (doc.title, doc.student_name, doc.course_name, doc.content_text),
        )
    )


def sort_documents(
    documents: List[TeacherDocument],
    sort_by: SortField = SortField.DATE,
    sort_order: SortOrder = SortOrder.DESC
) -> List[TeacherDocument]:
    """Stable in both directions: equal keys keep store order."""
    key = SORT_KEYS[SortField(sort_by)]
    return sorted(documents, key=key, reverse=SortOrder(sort_order) == SortOrder.DESC)


def summarize(documents: List[TeacherDocument], now: Optional[datetime] = None) -> AnalyticsSummary:
    week_ago = (now or utc_now()) - timedelta(days=settings.recent_upload_days)
    return AnalyticsSummary(
        total_students=len({doc.student_id for doc in documents}),
        pending_approvals=sum(1 for doc in documents if doc.approval_status == ApprovalStatus.PENDING),
        flagged_documents=sum(1 for doc in documents if doc.approval_status == ApprovalStatus.FLAGGED),
        recent_uploads=sum(1 for doc in documents if doc.created_at >= week_ago),
    )


class TeacherReviewService:
    """Teacher-facing view over the student document store"""

    def __init__(
        self,
        document_store: Optional[RecordStore] = None,
        review_store: Optional[RecordStore] = None
    ):
        if document_store is None:
            document_store = InMemoryStore(seed_student_documents())
        self.document_store: RecordStore = document_store
        self.review_store: RecordStore = review_store if review_store is not None else InMemoryStore(seed_reviews())
        self.approval_log: List[ApprovalRecord] = []

    async def _documents(self, include_deleted: bool = False) -> List[TeacherDocument]:
        documents = await self.document_store.list(lambda doc: include_deleted or not doc.is_deleted())
        reviews = {review.id: review for review in await self.review_store.list()}
        return [project(doc, reviews.get(doc.id)) for doc in documents]

    async def get_document(self, document_id: str) -> TeacherDocument:
        document = await self.document_store.get(document_id)
        if document is None:
            raise NotFoundError("Document not found")
        return project(document, await self.review_store.get(document_id))

    @monitor_performance("teacher.list_documents")
    async def list_documents(
        self,
        filters: Optional[TeacherDocumentFilters] = None,
        page: int = 1,
        limit: int = 20
    ) -> TeacherDocumentListResponse:
        filters = filters or TeacherDocumentFilters()
        include_deleted = bool(filters.status) and DocumentStatus.DELETED.value in filters.status

        documents = [
            doc for doc in await self._documents(include_deleted)
            if matches_filters(doc, filters)
        ]
        documents = sort_documents(documents, filters.sort_by, filters.sort_order)
        page_items, total = paginate(documents, page, limit)

        return TeacherDocumentListResponse(
            documents=page_items,
            total=total,
            page=page,
            limit=limit,
            filters_applied=filters,
            analytics_summary=summarize(documents),
        )

    async def _save_review(self, document_id: str, changes: Dict[str, Any]) -> DocumentReview:
        updated = await self.review_store.update(document_id, changes)
        if updated is not None:
            return updated
        try:
            return await self.review_store.create(DocumentReview(id=document_id, **changes))
        except ValueError:
            # created concurrently
            return await self.review_store.update(document_id, changes)

    async def approve_document(
        self,
        document_id: str,
        teacher_id: str,
        request: DocumentApprovalRequest
    ) -> DocumentApprovalResponse:
        """Apply approve/flag/reject; the document stays listed whatever the outcome."""
        try:
            action = ApprovalAction(request.action)
        except ValueError:
            raise ValidationError(INVALID_ACTION_MESSAGE)

        if await self.document_store.get(document_id) is None:
            raise NotFoundError("Document not found")

        changes: Dict[str, Any] = {
            "approval_status": action.resulting_status(),
            "approval_date": utc_now(),
        }
        if request.feedback is not None:
            changes["teacher_feedback"] = request.feedback

        review = await self._save_review(document_id, changes)

        mirrored = {"approval_status": review.approval_status}
        if request.feedback is not None:
            mirrored["teacher_notes"] = request.feedback
        await self.document_store.update(document_id, mirrored)

        self.approval_log.append(ApprovalRecord(
            document_id=document_id,
            teacher_id=teacher_id,
            action=action,
            reason=request.reason,
            feedback=request.feedback,
            timestamp=review.approval_date,
        ))

        if action == ApprovalAction.APPROVE:
            logger.info(f"Document {document_id} approved by teacher {teacher_id}")
        else:
            logger.info(f"Document {document_id} {ACTION_PAST_TENSE[action]} by teacher {teacher_id}: {request.reason}")

        return DocumentApprovalResponse(
            message=f"Document {ACTION_PAST_TENSE[action]} successfully",
            approval_status=review.approval_status,
            approval_date=review.approval_date,
        )

    def get_approval_history(self, document_id: Optional[str] = None) -> List[ApprovalRecord]:
        return [record for record in self.approval_log if document_id is None or record.document_id == document_id]

    async def dashboard_stats(self, teacher_id: str) -> TeacherDashboardStats:
        documents = await self._documents()
        summary = summarize(documents)

        most_active = None
        course_counts = Counter(doc.course_id for doc in documents if doc.course_id)
        if course_counts:
            # most_common keeps first-seen order on ties
            course_id, document_count = course_counts.most_common(1)[0]
            course_docs = [doc for doc in documents if doc.course_id == course_id]
            most_active = CourseActivity(
                id=course_id,
                name=course_docs[0].course_name or course_id,
                student_count=len({doc.student_id for doc in course_docs}),
                document_count=document_count,
            )

        logger.debug(f"Dashboard stats computed for {teacher_id}")

        return TeacherDashboardStats(
            students_count=summary.total_students,
            total_documents=len(documents),
            pending_reviews=summary.pending_approvals,
            flagged_content=summary.flagged_documents,
            this_week_uploads=summary.recent_uploads,
            ai_interactions=sum(doc.ai_queries_count for doc in documents),
            most_active_course=most_active,
        )
