"""
Tests for FastAPI application.
"""
import random
import time

import pytest
from fastapi.testclient import TestClient

from didattika.api import dependencies
from didattika.api.main import app
from didattika.services import (
    ChatService,
    ContentAnalysisService,
    ConversationService,
    DocumentService,
    InMemoryStore,
    TagValidationService,
    TeacherReviewService,
    TemplateResponseGenerator,
    seed_student_documents,
)

MIB = 1024 * 1024
SAMPLE_TEXT = (
    "L'algebra è una parte della matematica. Le equazioni sono uno strumento della algebra "
    "per risolvere problemi con una o più incognite."
)


@pytest.fixture
def client(tmp_path):
    """Test client with fresh services and no simulated latency."""
    analyzer = ContentAnalysisService()
    store = InMemoryStore(seed_student_documents())
    documents = DocumentService(store=store, analyzer=analyzer, upload_dir=str(tmp_path), processing_delay=0)
    conversations = ConversationService()
    chat = ChatService(
        TemplateResponseGenerator(delay_min=0, delay_max=0, rng=random.Random(1)),
        documents,
        conversations,
    )
    teacher = TeacherReviewService(document_store=store)
    tags = TagValidationService()

    app.dependency_overrides.update({
        dependencies.get_analysis_service: lambda: analyzer,
        dependencies.get_document_service: lambda: documents,
        dependencies.get_conversation_service: lambda: conversations,
        dependencies.get_chat_service: lambda: chat,
        dependencies.get_teacher_service: lambda: teacher,
        dependencies.get_tag_service: lambda: tags,
    })
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def wait_for_status(client, doc_id, headers=None, timeout=5.0):
    deadline = time.time() + timeout
    while True:
        document = client.get(f"/api/documents/{doc_id}", headers=headers).json()["document"]
        if document["status"] in ("completed", "failed") or time.time() > deadline:
            return document
        time.sleep(0.02)


def upload(client, data, filename, content_type="text/plain", headers=None, **form):
    return client.post(
        "/api/documents/upload",
        files={"file": (filename, data, content_type)},
        data=form,
        headers=headers,
    )


def test_root_endpoint(client):
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "running"
    assert "version" in data


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data


def test_security_headers(client):
    response = client.get("/")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Process-Time" in response.headers


def test_404_endpoint(client):
    response = client.get("/nonexistent")

    assert response.status_code == 404
    assert "error" in response.json()


def test_request_too_large(client):
    response = client.post(
        "/api/chat",
        content=b"{}",
        headers={"content-type": "application/json", "content-length": str(200 * MIB)},
    )

    assert response.status_code == 413
    assert "error" in response.json()


class TestDocumentsAPI:
    """Upload, processing and CRUD over HTTP"""

    def test_upload_text_document(self, client):
        response = upload(client, SAMPLE_TEXT.encode("utf-8"), "algebra.txt", title="Algebra")

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "uploading"
        assert data["message"] == "File uploaded successfully, processing started"

        document = wait_for_status(client, data["document_id"])
        assert document["status"] == "completed"
        assert document["title"] == "Algebra"
        assert document["metadata"]["language"] == "it"
        assert document["summary"]

    def test_upload_large_pdf_never_returns_to_uploading(self, client):
        data = b"%PDF-1.4\n" + b"0" * (5 * MIB - 9)
        response = upload(client, data, "test.pdf", "application/pdf", title="Test")

        assert response.status_code == 201
        assert response.json()["status"] == "uploading"

        document = wait_for_status(client, response.json()["document_id"], timeout=30.0)
        assert document["status"] in ("completed", "failed")

    def test_upload_validation_errors(self, client):
        response = upload(client, b"", "vuoto.txt")
        assert response.status_code == 400
        assert response.json() == {"error": "File vuoto o corrotto"}

        response = upload(client, b"data", "foto.png", "image/png")
        assert response.status_code == 400
        assert "Tipo di file non supportato" in response.json()["error"]

    def test_upload_without_file(self, client):
        response = client.post("/api/documents/upload", data={"title": "x"})

        assert response.status_code == 400
        assert response.json() == {"error": "No file provided"}

    def test_create_and_crud(self, client):
        response = client.post("/api/documents", json={"title": "Appunti", "file_type": "txt", "file_size": 12})
        assert response.status_code == 201
        body = response.json()
        assert body["message"]
        doc_id = body["document"]["id"]
        assert body["document"]["status"] == "processing"

        response = client.put(f"/api/documents/{doc_id}", json={"title": "Appunti rivisti"})
        assert response.status_code == 200
        assert response.json()["document"]["title"] == "Appunti rivisti"

        response = client.delete(f"/api/documents/{doc_id}")
        assert response.status_code == 200
        assert "message" in response.json()

        assert client.get("/api/documents").json()["total"] == 0
        assert client.get(f"/api/documents/{doc_id}").json()["document"]["status"] == "deleted"
        assert client.get("/api/documents?status=deleted").json()["total"] == 1

    def test_create_missing_fields(self, client):
        response = client.post("/api/documents", json={"title": "Solo titolo"})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields: title, file_type, file_size"}

    def test_documents_are_owner_scoped(self, client):
        doc_id = client.post(
            "/api/documents", json={"title": "Mio", "file_type": "txt", "file_size": 5},
            headers={"X-User-Id": "student-a"},
        ).json()["document"]["id"]

        response = client.get(f"/api/documents/{doc_id}", headers={"X-User-Id": "student-b"})
        assert response.status_code == 404
        assert response.json() == {"error": "Document not found"}

        response = client.delete(f"/api/documents/{doc_id}", headers={"X-User-Id": "student-b"})
        assert response.status_code == 404

        listing = client.get("/api/documents", headers={"X-User-Id": "student-a"}).json()
        assert listing["total"] == 1

    def test_list_filters(self, client):
        client.post("/api/documents", json={"title": "Storia", "file_type": "pdf", "file_size": 5})
        client.post("/api/documents", json={"title": "Algebra", "file_type": "txt", "file_size": 5})

        data = client.get("/api/documents?file_type=pdf&page=1&limit=10").json()
        assert [d["title"] for d in data["documents"]] == ["Storia"]
        assert data["filters_applied"]["file_type"] == ["pdf"]
        assert data["page"] == 1
        assert data["limit"] == 10

        data = client.get("/api/documents?search_query=alge").json()
        assert [d["title"] for d in data["documents"]] == ["Algebra"]

        data = client.get("/api/documents?date_start=2000-01-01T00:00:00Z&date_end=2000-12-31T00:00:00Z").json()
        assert data["total"] == 0

    def test_invalid_query_is_400(self, client):
        response = client.get("/api/documents?page=0")

        assert response.status_code == 400
        assert "error" in response.json()

    def test_document_tags(self, client):
        response = client.post(
            "/api/documents",
            json={"title": "Algebra", "file_type": "txt", "file_size": 50, "content_text": SAMPLE_TEXT},
        )
        doc_id = response.json()["document"]["id"]

        response = client.post(f"/api/documents/{doc_id}/tags")
        assert response.status_code == 200
        data = response.json()
        assert data["document_id"] == doc_id
        assert data["subject_area_detected"] == "matematica"
        assert [tag["name"] for tag in data["generated_tags"]] == ["algebra", "equazioni"]

    def test_document_tags_requires_completed_document(self, client):
        doc_id = client.post(
            "/api/documents", json={"title": "Vuoto", "file_type": "pdf", "file_size": 5}
        ).json()["document"]["id"]

        response = client.post(f"/api/documents/{doc_id}/tags")
        assert response.status_code == 400

        assert client.post("/api/documents/doc-missing/tags").status_code == 404


class TestTagsAPI:
    """Tag generation and explanation"""

    def test_generate(self, client):
        response = client.post("/api/tags/generate", json={"content": "La guerra e la battaglia", "max_tags": 1})

        assert response.status_code == 200
        data = response.json()
        assert data["subject_area_detected"] == "storia"
        assert len(data["generated_tags"]) == 1

    def test_generate_requires_content(self, client):
        response = client.post("/api/tags/generate", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Content is required"}

    def test_explain(self, client):
        response = client.post("/api/tags/explain", json={"tag_id": "tag-1", "user_level": "advanced"})

        assert response.status_code == 200
        data = response.json()
        assert data["tag_id"] == "tag-1"
        assert len(data["key_points"]) == 4
        assert "advanced" in data["difficulty_explanation"]


class TestChatAPI:
    """Persona chat and conversations"""

    def test_empty_message(self, client):
        response = client.post("/api/chat", json={"message": ""})

        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}

    def test_message_too_long(self, client):
        response = client.post("/api/chat", json={"message": "a" * 1001})

        assert response.status_code == 400
        assert response.json() == {"error": "Message too long. Please keep it under 1000 characters."}

    def test_chat(self, client):
        response = client.post("/api/chat", json={"message": "Ciao!", "persona": "tutor"})

        assert response.status_code == 200
        data = response.json()
        assert data["persona"] == "tutor"
        assert data["message"]
        assert data["conversationId"] is None
        assert data["timestamp"]

    def test_invalid_persona(self, client):
        response = client.post("/api/chat", json={"message": "Ciao", "persona": "wizard"})
        assert response.status_code == 400

    def test_ai_unavailable(self, client, tmp_path):
        class Broken(TemplateResponseGenerator):
            async def generate(self, *args, **kwargs):
                raise RuntimeError("down")

        chat = ChatService(Broken(), DocumentService(upload_dir=str(tmp_path)), ConversationService())
        app.dependency_overrides[dependencies.get_chat_service] = lambda: chat

        response = client.post("/api/chat", json={"message": "Ciao"})

        assert response.status_code == 503
        assert response.json() == {"error": "AI service temporarily unavailable. Please try again in a moment."}

    def test_ask_document(self, client):
        doc_id = client.post(
            "/api/documents",
            json={
                "title": "Algebra", "file_type": "txt", "file_size": 50,
                "content_text": SAMPLE_TEXT, "summary": "Introduzione all'algebra.",
            },
        ).json()["document"]["id"]

        response = client.post(
            "/api/chat/ask-document",
            json={"message": "Riassumi", "document_ids": [doc_id], "persona": "docente"},
        )

        assert response.status_code == 200
        assert "Algebra" in response.json()["message"]

    def test_ask_document_errors(self, client):
        response = client.post("/api/chat/ask-document", json={"message": "Riassumi", "document_ids": []})
        assert response.status_code == 400
        assert response.json() == {"error": "At least one document ID is required"}

        response = client.post("/api/chat/ask-document", json={"message": "Riassumi", "document_ids": ["doc-x"]})
        assert response.status_code == 404
        assert response.json() == {"error": "No valid documents found"}

    def test_conversation_lifecycle(self, client):
        response = client.post("/api/chat/conversations", json={"persona_type": "coach"})
        assert response.status_code == 201
        conversation = response.json()["conversation"]
        assert conversation["title"] == "Conversazione con Coach"

        client.post("/api/chat", json={"message": "Ho poco tempo", "persona": "coach",
                                       "conversationId": conversation["id"]})

        data = client.get(f"/api/chat/conversations/{conversation['id']}").json()["conversation"]
        assert [m["role"] for m in data["messages"]] == ["user", "assistant"]

        response = client.put(f"/api/chat/conversations/{conversation['id']}", json={"title": "Piano di studio"})
        assert response.json()["conversation"]["title"] == "Piano di studio"

        listing = client.get("/api/chat/conversations").json()
        assert listing["total"] == 1

        assert client.delete(f"/api/chat/conversations/{conversation['id']}").status_code == 200
        response = client.get(f"/api/chat/conversations/{conversation['id']}")
        assert response.status_code == 404
        assert response.json() == {"error": "Conversation not found"}

    def test_conversation_requires_persona(self, client):
        response = client.post("/api/chat/conversations", json={"title": "Senza persona"})

        assert response.status_code == 400
        assert response.json() == {"error": "Persona type is required"}

    def test_conversation_search(self, client):
        for persona, title in (("coach", "Piano settimanale"), ("tutor", "Frazioni"), ("coach", "Esami")):
            client.post("/api/chat/conversations", json={"persona_type": persona, "title": title})

        data = client.get("/api/chat/conversations?persona=coach&sort_by=title&sort_order=asc&limit=1").json()
        assert [c["title"] for c in data["conversations"]] == ["Esami"]
        assert data["total"] == 2
        assert data["has_more"]

        data = client.get("/api/chat/conversations?query=frazioni").json()
        assert [c["title"] for c in data["conversations"]] == ["Frazioni"]

        assert client.get("/api/chat/conversations?sort_by=colour").status_code == 400
        assert client.get("/api/chat/conversations?limit=0").status_code == 400


class TestTeacherAPI:
    """Teacher dashboard endpoints"""

    def test_flagged_filter(self, client):
        data = client.get("/api/teacher/documents?approval_status=flagged").json()

        assert all(d["approval_status"] == "flagged" for d in data["documents"])
        assert data["analytics_summary"]["flagged_documents"] == data["total"] == 1

    def test_comma_separated_filters_and_sorting(self, client):
        data = client.get("/api/teacher/documents?file_types=pdf,docx&sort_by=name&sort_order=asc").json()

        assert [d["title"] for d in data["documents"]] == ["Appunti di Calcolo Differenziale", "La Prima Guerra Mondiale"]
        assert data["filters_applied"]["file_types"] == ["pdf", "docx"]

    def test_invalid_sort(self, client):
        assert client.get("/api/teacher/documents?sort_by=colour").status_code == 400

    def test_pagination(self, client):
        data = client.get("/api/teacher/documents?page=2&limit=2").json()

        assert data["total"] == 3
        assert len(data["documents"]) == 1

    def test_approve(self, client):
        response = client.put(
            "/api/teacher/documents/doc-1/approve",
            json={"action": "approve", "feedback": "Ben fatto"},
            headers={"X-Teacher-Id": "teacher-7"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Document approved successfully"
        assert response.json()["approval_status"] == "approved"

        stats = client.get("/api/teacher/dashboard/stats").json()
        assert stats["pending_reviews"] == 0

    def test_approve_errors(self, client):
        response = client.put("/api/teacher/documents/doc-1/approve", json={"action": "archive"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid action. Must be 'approve', 'flag', or 'reject'"}

        response = client.put("/api/teacher/documents/doc-404/approve", json={"action": "flag"})
        assert response.status_code == 404

    def test_dashboard_stats(self, client):
        stats = client.get("/api/teacher/dashboard/stats").json()

        assert stats["total_documents"] == 3
        assert stats["students_count"] == 3
        assert stats["most_active_course"]["id"] == "course-1"

    def test_student_upload_reaches_teacher_view(self, client):
        student = {"X-User-Id": "student-9"}
        response = upload(client, SAMPLE_TEXT.encode("utf-8"), "algebra.txt", headers=student, title="Algebra")
        doc_id = response.json()["document_id"]
        wait_for_status(client, doc_id, headers=student)

        data = client.get("/api/teacher/documents?student_ids=student-9").json()
        assert data["total"] == 1
        assert data["documents"][0]["id"] == doc_id
        assert data["documents"][0]["approval_status"] == "pending"
        assert data["documents"][0]["student_name"] == "student-9"
        assert data["analytics_summary"]["pending_approvals"] == 1

        response = client.put(f"/api/teacher/documents/{doc_id}/approve", json={"action": "approve", "feedback": "Chiaro"})
        assert response.status_code == 200

        document = client.get(f"/api/documents/{doc_id}", headers=student).json()["document"]
        assert document["approval_status"] == "approved"
        assert document["teacher_notes"] == "Chiaro"
        assert client.get("/api/teacher/dashboard/stats").json()["total_documents"] == 4

    def test_tag_catalog(self, client):
        data = client.get("/api/teacher/tags?category=subject&limit=2").json()
        assert len(data["tags"]) == 2
        assert data["total"] == 3
        assert data["hasMore"]
        assert data["tags"][0]["status"] == "pending"

        response = client.post("/api/teacher/tags", json={"name": "Derivata", "category": "concept"},
                               headers={"X-Teacher-Id": "teacher-7"})
        assert response.status_code == 201
        tag = response.json()["tag"]
        assert tag["createdBy"] == "teacher-7"
        assert response.json()["message"] == "Tag created successfully"

        approved = client.get("/api/teacher/tags?status=approved").json()
        assert [t["name"] for t in approved["tags"]] == ["Derivata"]

        response = client.put(f"/api/teacher/tags/{tag['id']}", json={"description": "Tasso di variazione"})
        assert response.status_code == 200
        assert response.json()["tag"]["description"] == "Tasso di variazione"

        response = client.delete(f"/api/teacher/tags/{tag['id']}")
        assert response.status_code == 200
        assert response.json()["tagId"] == tag["id"]

    def test_tag_catalog_errors(self, client):
        response = client.post("/api/teacher/tags", json={"name": "Mathematics"})
        assert response.status_code == 400
        assert response.json() == {"error": "A tag with this name already exists"}

        assert client.get("/api/teacher/tags?status=archived").status_code == 400
        assert client.put("/api/teacher/tags/tag-404", json={"name": "Nuovo"}).status_code == 404
        response = client.delete("/api/teacher/tags/tag-404")
        assert response.status_code == 404
        assert response.json() == {"error": "Tag not found"}

    def test_validate_tag_approve(self, client):
        original = client.get("/api/teacher/tags/tag-1/validate").json()["tag"]

        response = client.put("/api/teacher/tags/tag-1/validate", json={"action": "approve"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["validation"]["feedbackType"] == "approved"
        assert data["updatedTag"] == original
        assert data["aiFeedback"]["feedbackType"] == "enhancement"

        history = client.get("/api/teacher/tags/tag-1/validate").json()["validationHistory"]
        assert len(history) == 1

    def test_validate_tag_modify(self, client):
        response = client.put(
            "/api/teacher/tags/tag-2/validate",
            json={"action": "modify", "newName": "Scienze", "reasonForChange": "Italiano"},
        )

        assert response.status_code == 200
        assert response.json()["updatedTag"]["name"] == "Scienze"
        assert response.json()["validation"]["reasonForChange"] == "Italiano"

    def test_validate_tag_errors(self, client):
        response = client.put("/api/teacher/tags/tag-1/validate", json={"action": "archive"})
        assert response.status_code == 400

        response = client.put("/api/teacher/tags/tag-404/validate", json={"action": "approve"})
        assert response.status_code == 404
        assert response.json() == {"error": "Tag not found"}

    def test_bulk_action(self, client):
        response = client.post(
            "/api/teacher/tags/bulk-action",
            json={"operation": "reject", "tagIds": ["tag-1", "tag-2"], "reason": "Duplicati"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["successRate"] == 100
        assert data["successful"] == ["tag-1", "tag-2"]

    def test_bulk_action_catalog_and_errors(self, client):
        catalog = client.get("/api/teacher/tags/bulk-action").json()
        assert "merge" in catalog["operations"]

        response = client.post("/api/teacher/tags/bulk-action", json={"operation": "approve", "tagIds": []})
        assert response.status_code == 400
        assert response.json() == {"error": "Tag IDs are required"}


class TestPersonaAndSystemAPI:
    """Persona catalog and metrics"""

    def test_personas(self, client):
        personas = client.get("/api/personas").json()["personas"]

        assert [p["id"] for p in personas] == ["tutor", "docente", "coach"]
        assert all("prompt" not in p for p in personas)

    def test_persona_prompts(self, client):
        data = client.get("/api/personas/coach/prompts").json()

        assert data["persona"] == "coach"
        assert data["prompt"]
        assert data["characteristics"]

    def test_invalid_persona_prompts(self, client):
        response = client.get("/api/personas/wizard/prompts")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid persona type"}

    def test_performance_metrics(self, client):
        client.get("/api/teacher/documents")

        metrics = client.get("/api/system/performance").json()
        assert "teacher.list_documents" in metrics
