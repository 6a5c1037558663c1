from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import app.main as main_module
from app.ai.llm.gemini_client import get_completion_client
from app.main import app
from app.schemas.article import DuplicateGroup
from app.schemas.completion import CompletionResult
from app.schemas.export import ExportResult
from app.schemas.project import ProjectStats
from app.services.article_service import ArticleService, DuplicateArticleError
from app.services.auth_service import AuthService
from app.services.export_service import ExportError, ExportProjectNotFoundError, ExportService
from app.services.assistant_service import AssistantProjectNotFoundError, AssistantService
from app.services.project_service import ProjectService
from app.services.protocol_service import ProtocolLockedError, ProtocolNotFoundError, ProtocolService


def _project(user_id, **values):
    now = datetime.now(timezone.utc)
    data = dict(
        id=uuid4(),
        user_id=user_id,
        title="Exercise for back pain",
        description=None,
        project_type="systematic_review",
        status="draft",
        research_domain=None,
        progress_percentage=0,
        current_stage="Planning",
        last_activity_at=now,
        created_at=now,
        updated_at=now,
    )
    data.update(values)
    return SimpleNamespace(**data)


# ============================================================
# Health
# ============================================================

def test_root_check(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "running"


def test_health_degraded_without_database_check(client, monkeypatch):
    async def fake_check():
        return False

    monkeypatch.setattr(main_module, "check_db_connection", fake_check)

    response = client.get("/health")

    assert response.json()["status"] == "degraded"
    assert response.json()["database"] == "disconnected"


# ============================================================
# Auth
# ============================================================

def test_get_me_check(authed_client, profile):
    response = authed_client.get("/api/v1/auth/me")

    assert response.status_code == 200
    assert response.json()["email"] == "reviewer@example.com"
    assert response.json()["id"] == str(profile.id)


def test_update_me_check(authed_client, profile, monkeypatch):
    async def fake_update(self, current, data):
        current.organization = data.organization
        return current

    monkeypatch.setattr(AuthService, "update_profile", fake_update)

    response = authed_client.patch("/api/v1/auth/me", json={"organization": "Cochrane"})

    assert response.status_code == 200
    assert response.json()["organization"] == "Cochrane"


def test_invalid_token_check(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


# ============================================================
# Projects
# ============================================================

def test_create_project_check(authed_client, profile, monkeypatch):
    async def fake_create(self, data, user_id):
        return _project(user_id, title=data.title, project_type=data.project_type.value)

    monkeypatch.setattr(ProjectService, "create_project", fake_create)

    response = authed_client.post("/api/v1/projects", json={"title": "Yoga trials", "project_type": "meta_analysis"})

    assert response.status_code == 201
    assert response.json()["title"] == "Yoga trials"
    assert response.json()["project_type"] == "meta_analysis"
    assert response.json()["user_id"] == str(profile.id)


def test_list_projects_status_filter_check(authed_client, profile, monkeypatch):
    seen = {}

    async def fake_list(self, user_id, status, skip, limit):
        seen["status"] = status
        return [_project(user_id, status="active")]

    monkeypatch.setattr(ProjectService, "get_user_projects", fake_list)

    response = authed_client.get("/api/v1/projects", params={"status": "active"})

    assert response.status_code == 200
    assert seen["status"].value == "active"
    assert response.json()[0]["status"] == "active"


def test_get_missing_project_check(authed_client, monkeypatch):
    async def fake_get(self, project_id, user_id):
        raise ValueError("Project not found")

    monkeypatch.setattr(ProjectService, "get_project", fake_get)

    response = authed_client.get(f"/api/v1/projects/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["detail"] == "Project not found"


def test_project_stats_check(authed_client, monkeypatch):
    async def fake_stats(self, project_id, user_id):
        return ProjectStats(total_studies=5, pending_studies=2, included_studies=3)

    monkeypatch.setattr(ProjectService, "get_project_stats", fake_stats)

    response = authed_client.get(f"/api/v1/projects/{uuid4()}/stats")

    assert response.status_code == 200
    assert response.json()["total_studies"] == 5
    assert response.json()["excluded_studies"] == 0


def test_update_project_validation_check(authed_client):
    response = authed_client.patch(f"/api/v1/projects/{uuid4()}", json={"progress_percentage": 120})

    assert response.status_code == 422


# ============================================================
# Articles
# ============================================================

def test_duplicate_article_conflict_check(authed_client, monkeypatch):
    async def fake_create(self, project_id, user_id, data):
        raise DuplicateArticleError("Article already imported")

    monkeypatch.setattr(ArticleService, "create_article", fake_create)

    response = authed_client.post(
        f"/api/v1/projects/{uuid4()}/articles",
        json={"title": "Trial", "source": "pubmed", "external_id": "123"}
    )

    assert response.status_code == 409


def test_screening_rejects_unknown_decision_check(authed_client):
    response = authed_client.patch(
        f"/api/v1/projects/{uuid4()}/articles/{uuid4()}/screening",
        json={"screening_decision": "perhaps"}
    )

    assert response.status_code == 422


# ============================================================
# Exports
# ============================================================

def test_export_download_check(authed_client, monkeypatch):
    async def fake_export(self, project_id, user_id, request):
        return ExportResult(
            content="title\nWalking programmes",
            content_type="text/csv",
            filename="Back pain-export.csv",
            record_count=1,
        )

    monkeypatch.setattr(ExportService, "export_project", fake_export)

    response = authed_client.post(f"/api/v1/projects/{uuid4()}/exports", json={"export_type": "csv"})

    assert response.status_code == 200
    assert response.text == "title\nWalking programmes"
    assert response.headers["content-disposition"] == 'attachment; filename="Back pain-export.csv"'
    assert response.headers["x-export-count"] == "1"
    assert response.headers["content-type"].startswith("text/csv")


def test_export_unknown_field_check(authed_client, monkeypatch):
    async def fake_export(self, project_id, user_id, request):
        raise ExportError("Unknown export fields: password")

    monkeypatch.setattr(ExportService, "export_project", fake_export)

    response = authed_client.post(
        f"/api/v1/projects/{uuid4()}/exports",
        json={"export_type": "json", "include_fields": ["password"]}
    )

    assert response.status_code == 400


def test_export_missing_project_check(authed_client, monkeypatch):
    async def fake_export(self, project_id, user_id, request):
        raise ExportProjectNotFoundError("Project not found or access denied")

    monkeypatch.setattr(ExportService, "export_project", fake_export)

    response = authed_client.post(f"/api/v1/projects/{uuid4()}/exports", json={"export_type": "prisma"})

    assert response.status_code == 404


def test_export_unknown_type_check(authed_client):
    response = authed_client.post(f"/api/v1/projects/{uuid4()}/exports", json={"export_type": "docx"})

    assert response.status_code == 422


# ============================================================
# Duplicate detection
# ============================================================

def test_find_duplicates_check(authed_client, monkeypatch):
    seen = {}
    now = datetime.now(timezone.utc)

    def article(title):
        return dict(id=str(uuid4()), project_id=str(uuid4()), source="pubmed", title=title,
                    status="pending", created_at=now, updated_at=now)

    async def fake_find(self, project_id, user_id, threshold):
        seen["threshold"] = threshold
        return [DuplicateGroup(
            primary=article("Yoga for back pain"),
            duplicates=[article("Yoga for low back pain")],
            similarity_score=0.93,
            matching_fields=["title", "authors"],
        )]

    monkeypatch.setattr(ArticleService, "find_duplicates", fake_find)

    response = authed_client.get(f"/api/v1/projects/{uuid4()}/articles/duplicates", params={"threshold": 0.9})

    assert response.status_code == 200
    assert seen["threshold"] == 0.9
    assert response.json()[0]["primary"]["title"] == "Yoga for back pain"
    assert response.json()[0]["matching_fields"] == ["title", "authors"]


def test_find_duplicates_threshold_range_check(authed_client):
    response = authed_client.get(f"/api/v1/projects/{uuid4()}/articles/duplicates", params={"threshold": 1.5})

    assert response.status_code == 422


# ============================================================
# Protocols
# ============================================================

def _protocol(user_id, project_id, **values):
    now = datetime.now(timezone.utc)
    data = dict(
        id=uuid4(),
        project_id=project_id,
        user_id=user_id,
        title="Exercise protocol",
        description=None,
        research_question="Does exercise reduce back pain?",
        framework_type="pico",
        inclusion_criteria=None,
        exclusion_criteria=None,
        search_strategy=None,
        databases=["PubMed"],
        keywords=None,
        study_types=None,
        date_range=None,
        status="draft",
        is_locked=False,
        locked_at=None,
        version=1,
        ai_generated=False,
        ai_guidance_used=None,
        created_at=now,
        updated_at=now,
    )
    data.update(values)
    return SimpleNamespace(**data)


def test_create_protocol_check(authed_client, profile, monkeypatch):
    async def fake_create(self, project_id, user_id, data):
        return _protocol(user_id, project_id, title=data.title, research_question=data.research_question)

    monkeypatch.setattr(ProtocolService, "create_protocol", fake_create)
    project_id = uuid4()

    response = authed_client.post(
        f"/api/v1/projects/{project_id}/protocols",
        json={"title": "Yoga protocol", "research_question": "Does yoga help?"}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Yoga protocol"
    assert body["project_id"] == str(project_id)
    assert body["status"] == "draft"
    assert body["inclusion_criteria"] == []
    assert body["search_strategy"] == {}


def test_create_protocol_validation_check(authed_client):
    response = authed_client.post(
        f"/api/v1/projects/{uuid4()}/protocols",
        json={"title": "Yoga protocol", "research_question": "Q", "framework_type": "picos"}
    )

    assert response.status_code == 422


def test_update_locked_protocol_conflict_check(authed_client, monkeypatch):
    async def fake_update(self, project_id, protocol_id, user_id, data):
        raise ProtocolLockedError("Cannot update locked protocol")

    monkeypatch.setattr(ProtocolService, "update_protocol", fake_update)

    response = authed_client.patch(f"/api/v1/projects/{uuid4()}/protocols/{uuid4()}", json={"title": "New"})

    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot update locked protocol"


def test_get_missing_protocol_check(authed_client, monkeypatch):
    async def fake_get(self, project_id, protocol_id, user_id):
        raise ProtocolNotFoundError("Protocol not found")

    monkeypatch.setattr(ProtocolService, "get_protocol", fake_get)

    response = authed_client.get(f"/api/v1/projects/{uuid4()}/protocols/{uuid4()}")

    assert response.status_code == 404


def test_lock_protocol_check(authed_client, profile, monkeypatch):
    async def fake_lock(self, project_id, protocol_id, user_id):
        return _protocol(user_id, project_id, id=protocol_id, is_locked=True,
                         locked_at=datetime.now(timezone.utc), status="active")

    monkeypatch.setattr(ProtocolService, "lock_protocol", fake_lock)

    response = authed_client.post(f"/api/v1/projects/{uuid4()}/protocols/{uuid4()}/lock")

    assert response.status_code == 200
    assert response.json()["is_locked"] is True
    assert response.json()["status"] == "active"


# ============================================================
# Assistant
# ============================================================

class _FakeResearchClient:
    def __init__(self, error=None):
        self.error = error

    async def get_protocol_guidance(self, research_question, current_protocol=None, focus_area=None):
        if self.error:
            raise self.error
        return CompletionResult(content=f"Guidance on {focus_area}", model="gemini-test")

    async def get_research_assistance(self, query, project_title=None, current_stage=None, relevant_documents=None):
        if self.error:
            raise self.error
        return CompletionResult(content=f"Answer for {project_title}", model="gemini-test")


def _assistant_client(authed_client, monkeypatch, project=SimpleNamespace(title="Yoga review", current_stage="Planning"), error=None):
    async def fake_project(self, project_id, user_id):
        if project is None:
            raise AssistantProjectNotFoundError("Project not found")
        return project

    monkeypatch.setattr(AssistantService, "_project", fake_project)
    app.dependency_overrides[get_completion_client] = lambda: _FakeResearchClient(error)
    return authed_client


def test_protocol_guidance_check(authed_client, monkeypatch):
    client = _assistant_client(authed_client, monkeypatch)

    response = client.post(
        f"/api/v1/projects/{uuid4()}/protocol-guidance",
        json={"research_question": "Does yoga help?", "focus_area": "spider"}
    )

    assert response.status_code == 200
    assert response.json()["content"] == "Guidance on spider"


def test_protocol_guidance_unknown_focus_area_check(authed_client, monkeypatch):
    client = _assistant_client(authed_client, monkeypatch)

    response = client.post(
        f"/api/v1/projects/{uuid4()}/protocol-guidance",
        json={"research_question": "Does yoga help?", "focus_area": "budget"}
    )

    assert response.status_code == 400


def test_protocol_guidance_missing_project_check(authed_client, monkeypatch):
    client = _assistant_client(authed_client, monkeypatch, project=None)

    response = client.post(f"/api/v1/projects/{uuid4()}/protocol-guidance", json={"research_question": "Q"})

    assert response.status_code == 404


def test_research_assistance_check(authed_client, monkeypatch):
    client = _assistant_client(authed_client, monkeypatch)

    response = client.post("/api/v1/assistant/research", json={"query": "Which model?", "project_id": str(uuid4())})

    assert response.status_code == 200
    assert response.json()["content"] == "Answer for Yoga review"


def test_research_assistance_model_failure_check(authed_client, monkeypatch):
    client = _assistant_client(authed_client, monkeypatch, error=RuntimeError("quota exceeded"))

    response = client.post("/api/v1/assistant/research", json={"query": "Which model?"})

    assert response.status_code == 502
    assert response.json()["detail"] == "quota exceeded"
