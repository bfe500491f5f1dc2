"""Document upload, background processing and per-owner lifecycle"""

import logging
import asyncio
import math
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import aiofiles
from fastapi import UploadFile
from pydantic import ValidationError as PydanticValidationError

from didattika.config.settings import get_settings
from didattika.models.base import utc_now
from didattika.models.document import (
    Document,
    DocumentCreate,
    DocumentFilters,
    DocumentListResponse,
    DocumentMetadata,
    DocumentStatus,
    DocumentUploadResponse,
    FileType,
    UploadFileInfo,
    UploadValidationResult,
)
from didattika.services.content_analysis import ContentAnalysisService
from didattika.services.filters import in_date_range, in_values, matches_search, paginate
from didattika.services.store import InMemoryStore, RecordStore
from didattika.utils.exceptions import NotFoundError, ValidationError
from didattika.utils.performance import monitor_performance

logger = logging.getLogger(__name__)
settings = get_settings()

MIB = 1024 * 1024

MAX_FILE_SIZES = {
    FileType.PDF.value: 10 * MIB,
    FileType.DOCX.value: 10 * MIB,
    FileType.TXT.value: 5 * MIB,
}
LARGE_FILE_WARNING_BYTES = 5 * MIB
LONG_FILENAME_CHARS = 100

BASE_PROCESSING_MS = {
    FileType.PDF.value: 3000,
    FileType.DOCX.value: 2000,
    FileType.TXT.value: 1000,
}
UNKNOWN_PROCESSING_MS = 5000
PROCESSING_MS_PER_MIB = 500

EXTRACTION_METHODS = {
    FileType.TXT.value: "text-reader",
    FileType.PDF.value: "pypdf2",
    FileType.DOCX.value: "python-docx",
}

IMMUTABLE_FIELDS = {"id", "user_id", "created_at", "updated_at"}

SENTENCE_SPLIT = re.compile(r"[.!?]+")

NOT_FOUND_MESSAGE = "Document not found"


def get_file_type(filename: Optional[str], content_type: Optional[str]) -> str:
    """Resolve pdf/docx/txt from the extension, falling back to the MIME type."""
    extension = (filename or "").lower().rsplit(".", 1)[-1] if "." in (filename or "") else ""
    if extension in MAX_FILE_SIZES:
        return extension

    mime = (content_type or "").lower()
    if "pdf" in mime:
        return FileType.PDF.value
    if "wordprocessingml" in mime or "msword" in mime:
        return FileType.DOCX.value
    if "text" in mime:
        return FileType.TXT.value
    return "unknown"


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    index = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = round(size / (1024 ** index), 2)
    return f"{value:g} {units[index]}"


def validate_file(filename: Optional[str], content_type: Optional[str], size: int) -> UploadValidationResult:
    """Check an incoming upload; errors make it invalid, warnings do not."""
    errors: List[str] = []
    warnings: List[str] = []

    if size == 0:
        errors.append("File vuoto o corrotto")

    file_type = get_file_type(filename, content_type)
    if file_type not in MAX_FILE_SIZES:
        accepted = ", ".join(MAX_FILE_SIZES).upper()
        errors.append(f"Tipo di file non supportato. Formati accettati: {accepted}")

    max_size = min(MAX_FILE_SIZES.get(file_type, settings.max_file_size), settings.max_file_size)
    if size > max_size:
        errors.append(
            f"File troppo grande. Dimensione massima per {file_type.upper()}: {format_file_size(max_size)}"
        )

    if size > LARGE_FILE_WARNING_BYTES:
        warnings.append("File di grandi dimensioni: l'elaborazione potrebbe richiedere più tempo")

    if len(filename or "") > LONG_FILENAME_CHARS:
        warnings.append("Nome file molto lungo: verrà troncato")

    return UploadValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        file_info=UploadFileInfo(size=size, type=content_type, name=filename),
        file_type=file_type,
    )


def estimate_processing_time(file_type: str, size: int) -> int:
    """Rough processing estimate in milliseconds."""
    base = BASE_PROCESSING_MS.get(file_type, UNKNOWN_PROCESSING_MS)
    return round(base + (size / MIB) * PROCESSING_MS_PER_MIB)


def generate_summary(text: str, max_sentences: Optional[int] = None) -> str:
    """Extractive summary: first, longest and last sentence, without repeats."""
    limit = max_sentences or settings.summary_max_sentences
    sentences = [s.strip() for s in SENTENCE_SPLIT.split(text) if s.strip()]
    if not sentences:
        return ""

    summary = [sentences[0]]

    if len(sentences) > 2:
        longest = max(sentences, key=len)
        if longest not in summary:
            summary.append(longest)

    if len(sentences) > 1 and len(summary) < limit:
        last = sentences[-1]
        if last not in summary:
            summary.append(last)

    return ". ".join(summary[:limit]) + "."


class DocumentService:
    """Owns the document store and the background processor"""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        analyzer: Optional[ContentAnalysisService] = None,
        upload_dir: Optional[str] = None,
        processing_delay: Optional[float] = None,
        processing_timeout: Optional[float] = None
    ):
        self.store: RecordStore = store or InMemoryStore()
        self.analyzer = analyzer or ContentAnalysisService()
        self.upload_dir = Path(upload_dir or settings.upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.processing_delay = settings.processing_delay if processing_delay is None else processing_delay
        self.processing_timeout = processing_timeout or settings.processing_timeout

        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Upload and processing
    # ------------------------------------------------------------------

    @monitor_performance("documents.upload")
    async def upload_document(
        self,
        file: UploadFile,
        owner_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None
    ) -> DocumentUploadResponse:
        """Validate and store an upload, then process it in the background."""
        content = await file.read()

        validation = validate_file(file.filename, file.content_type, len(content))
        if not validation.valid:
            logger.warning(f"Upload rejected for {file.filename}: {validation.errors}")
            raise ValidationError(", ".join(validation.errors), reasons=validation.errors)

        document = Document(
            user_id=owner_id,
            title=(title or "").strip() or Path(file.filename).stem or file.filename,
            file_type=validation.file_type,
            file_size=len(content),
            status=DocumentStatus.UPLOADING,
            metadata=DocumentMetadata(original_filename=file.filename, description=description),
        )

        owner_dir = self.upload_dir / owner_id
        owner_dir.mkdir(parents=True, exist_ok=True)
        file_path = owner_dir / f"{document.id}.{validation.file_type}"

        async with aiofiles.open(file_path, 'wb') as f:
            await f.write(content)

        document.file_path = str(file_path)
        await self.store.create(document)

        logger.info(f"Document uploaded: {file.filename} ({len(content)} bytes) as {document.id}")

        task = asyncio.create_task(self._process_document_async(document.id, file_path, validation.file_type))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        return DocumentUploadResponse(
            document_id=document.id,
            status=DocumentStatus.UPLOADING,
            message="File uploaded successfully, processing started",
            warnings=validation.warnings,
        )

    async def _process_document_async(self, document_id: str, file_path: Path, file_type: str) -> None:
        """uploading -> processing -> completed | failed"""
        started = await self.store.update(
            document_id,
            {"status": DocumentStatus.PROCESSING},
            where=lambda doc: doc.status == DocumentStatus.UPLOADING,
        )
        if started is None:
            logger.warning(f"Document {document_id} left the upload state before processing")
            return

        start_time = time.time()
        try:
            text, pages = await asyncio.wait_for(
                self._extract(file_path, file_type),
                timeout=self.processing_timeout,
            )

            metadata = started.metadata.model_copy(update={
                "pages": pages,
                "word_count": len(text.split()),
                "language": self.analyzer.detect_language(text),
                "encoding": "UTF-8" if file_type == FileType.TXT.value else None,
                "extraction_method": EXTRACTION_METHODS[file_type],
                "processing_time": time.time() - start_time,
            })

            completed = await self.store.update(
                document_id,
                {
                    "status": DocumentStatus.COMPLETED,
                    "content_text": text,
                    "summary": generate_summary(text),
                    "metadata": metadata.model_dump(),
                },
                where=lambda doc: doc.status == DocumentStatus.PROCESSING,
            )
            if completed is None:
                logger.warning(f"Document {document_id} changed state during processing; result discarded")
                return

            logger.info(f"Document processed: {document_id} ({metadata.word_count} words)")

        except asyncio.TimeoutError:
            await self._mark_failed(document_id, f"Processing timed out after {self.processing_timeout}s")
        except Exception as e:
            logger.error(f"Document processing failed for {document_id}: {str(e)}")
            await self._mark_failed(document_id, str(e) or type(e).__name__)

    async def _extract(self, file_path: Path, file_type: str) -> Tuple[str, Optional[int]]:
        if self.processing_delay > 0:
            await asyncio.sleep(self.processing_delay)
        return await self.parse_document(file_path, file_type)

    async def _mark_failed(self, document_id: str, reason: str) -> None:
        def fail(doc: Document) -> Document:
            doc.record_error(reason)
            doc.status = DocumentStatus.FAILED
            doc.update_timestamp()
            return doc

        await self.store.apply(
            document_id,
            fail,
            where=lambda doc: doc.status == DocumentStatus.PROCESSING,
        )

    async def parse_document(self, file_path: Path, file_type: str) -> Tuple[str, Optional[int]]:
        """Extract text; returns the text and the page count where the format has one."""
        if file_type == FileType.TXT.value:
            return await self._parse_text_file(file_path), None
        if file_type == FileType.PDF.value:
            return await self._parse_pdf_file(file_path)
        if file_type == FileType.DOCX.value:
            return await self._parse_word_file(file_path), None
        raise ValueError(f"Tipo di file non supportato: {file_type}")

    async def _parse_text_file(self, file_path: Path) -> str:
        async with aiofiles.open(file_path, 'r', encoding='utf-8') as f:
            return await f.read()

    async def _parse_pdf_file(self, file_path: Path) -> Tuple[str, int]:
        try:
            import PyPDF2
        except ImportError:
            logger.error("PyPDF2 is not installed; cannot parse PDF files")
            raise

        def read_pdf() -> Tuple[str, int]:
            with open(file_path, 'rb') as file:
                reader = PyPDF2.PdfReader(file)
                pages = [page.extract_text() or "" for page in reader.pages]
            return "\n".join(pages).strip(), len(pages)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, read_pdf)

    async def _parse_word_file(self, file_path: Path) -> str:
        try:
            from docx import Document as DocxDocument
        except ImportError:
            logger.error("python-docx is not installed; cannot parse Word files")
            raise

        def read_docx() -> str:
            doc = DocxDocument(str(file_path))
            return "\n".join(paragraph.text for paragraph in doc.paragraphs).strip()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, read_docx)

    async def wait_for_processing(self) -> None:
        """Wait for every in-flight background task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Record lifecycle
    # ------------------------------------------------------------------

    async def create_document(self, owner_id: str, payload: DocumentCreate) -> Document:
        if not payload.title or not payload.file_type or not payload.file_size:
            raise ValidationError("Missing required fields: title, file_type, file_size")

        now = utc_now()
        try:
            document = Document(
                user_id=owner_id,
                title=payload.title,
                file_path=f"/uploads/{owner_id}/{int(now.timestamp() * 1000)}-{payload.title}",
                file_type=payload.file_type,
                file_size=payload.file_size,
                content_text=payload.content_text,
                summary=payload.summary,
                metadata=DocumentMetadata.model_validate(payload.metadata or {}),
                status=DocumentStatus.COMPLETED if payload.content_text else DocumentStatus.PROCESSING,
                created_at=now,
                updated_at=now,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid document: {e.errors()[0]['msg']}") from e

        created = await self.store.create(document)
        logger.info(f"Document created: {created.id} for {owner_id}")
        return created

    async def get_document(self, document_id: str, owner_id: str) -> Document:
        """Owned document, deleted ones included."""
        document = await self.store.get(document_id, where=lambda doc: doc.user_id == owner_id)
        if document is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        return document

    async def update_document(self, document_id: str, owner_id: str, patch: Dict[str, Any]) -> Document:
        changes = {key: value for key, value in patch.items() if key not in IMMUTABLE_FIELDS}
        if changes.get("status") == DocumentStatus.UPLOADING.value:
            raise ValidationError("Status cannot be reset to uploading")

        try:
            updated = await self.store.update(
                document_id,
                changes,
                where=lambda doc: doc.user_id == owner_id,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid update: {e.errors()[0]['msg']}") from e

        if updated is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        return updated

    async def delete_document(self, document_id: str, owner_id: str) -> Document:
        """Soft delete; the record stays retrievable by id."""
        deleted = await self.store.update(
            document_id,
            {"status": DocumentStatus.DELETED},
            where=lambda doc: doc.user_id == owner_id,
        )
        if deleted is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        logger.info(f"Document deleted: {document_id}")
        return deleted

    @monitor_performance("documents.list")
    async def list_documents(
        self,
        owner_id: str,
        filters: Optional[DocumentFilters] = None,
        page: int = 1,
        limit: int = 20
    ) -> DocumentListResponse:
        filters = filters or DocumentFilters()
        include_deleted = bool(filters.status) and DocumentStatus.DELETED.value in filters.status

        def matches(doc: Document) -> bool:
            return (
                doc.user_id == owner_id
                and (include_deleted or not doc.is_deleted())
                and in_values(doc.file_type, filters.file_type)
                and in_values(doc.status, filters.status)
                and in_date_range(doc.created_at, filters.date_range)
                and matches_search(filters.search_query, (doc.title, doc.content_text, doc.summary))
            )

        documents = await self.store.list(matches)
        documents.sort(key=lambda doc: doc.created_at, reverse=True)
        page_items, total = paginate(documents, page, limit)

        return DocumentListResponse(
            documents=page_items,
            total=total,
            page=page,
            limit=limit,
            filters_applied=filters,
        )

    async def get_completed_documents(self, owner_id: str, document_ids: List[str]) -> List[Document]:
        """Owned, completed documents among ``document_ids`` in request order."""
        documents = []
        for document_id in dict.fromkeys(document_ids):
            document = await self.store.get(
                document_id,
                where=lambda doc: doc.user_id == owner_id and doc.is_completed(),
            )
            if document is not None:
                documents.append(document)
        return documents
