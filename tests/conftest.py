"""Pytest fixtures and configuration."""
import pytest
from contextlib import ExitStack
from uuid import uuid4
from fastapi.testclient import TestClient
from unittest.mock import MagicMock, AsyncMock, patch
from hypothesis import settings as h_settings
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.catalog import get_catalog, get_cause_catalog
from app.database.connection import build_engine
from app.database.orm import Base
from app.services import AuditService, DiagnosticRepository, get_repository

h_settings.register_profile("ci", deadline=None, max_examples=100)
h_settings.load_profile("ci")

ROUTER_MODULES = (
    "app.routers.health",
    "app.routers.assessments",
    "app.routers.causes",
    "app.routers.snapshots",
)

# COMERCIAL and ADM_FIN land LOW (gap pending), OPERACOES and GESTAO MEDIUM;
# action-fit then suggests exactly five actions and no mechanism action.
PLAN_ANSWERS = {
    "COMERCIAL": [1, 1, 9, 1],
    "OPERACOES": [1, 1, 9, 9],
    "ADM_FIN": [1, 1, 1, 9],
    "GESTAO": [1, 1, 9, 9],
}


def answers_payload(process_key: str, values) -> dict:
    """Body for PUT /answers with Q01..Q04 set to ``values``."""
    return {
        "process_key": process_key,
        "answers": [
            {"question_key": f"Q{i:02d}", "answer_value": v}
            for i, v in enumerate(values, start=1)
        ],
    }


@pytest.fixture
def engine():
    """In-memory SQLite engine with every table created."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine, expire_on_commit=False)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def repo(db_session):
    return DiagnosticRepository(db_session)


@pytest.fixture
def audit(repo):
    return AuditService(repo)


@pytest.fixture
def catalog():
    return get_catalog()


@pytest.fixture
def cause_catalog():
    return get_cause_catalog()


@pytest.fixture
def mock_redis():
    """Mock Redis cache: every read is a miss."""
    mock = MagicMock()
    mock.health_check = AsyncMock(return_value=(True, None))
    mock.get = MagicMock(return_value=None)
    mock.set = MagicMock(return_value=True)
    mock.delete = MagicMock(return_value=True)
    mock.invalidate_assessment = MagicMock(return_value=None)
    return mock


@pytest.fixture
def client(engine, mock_redis):
    """Test client on the in-memory database with a mocked cache."""
    from app.main import app

    factory = sessionmaker(bind=engine, expire_on_commit=False)

    def override_repository():
        session = factory()
        try:
            yield DiagnosticRepository(session)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_repository] = override_repository
    with ExitStack() as stack:
        for module in ROUTER_MODULES:
            stack.enter_context(
                patch(f"{module}.get_redis_cache", return_value=mock_redis)
            )
        yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_company_id():
    """Sample company UUID."""
    return str(uuid4())


@pytest.fixture
def create_assessment(client, sample_company_id):
    """Factory: POST /current and return the assessment body."""
    def _create(company_id=None, segment="C"):
        response = client.post(
            "/api/v1/assessments/current",
            json={"company_id": company_id or sample_company_id, "segment": segment},
        )
        assert response.status_code == 200, response.text
        return response.json()
    return _create


@pytest.fixture
def answer_all(client):
    """Factory: answer every process of an assessment."""
    def _answer(assessment_id, answers=None):
        for process_key, values in (answers or PLAN_ANSWERS).items():
            response = client.put(
                f"/api/v1/assessments/{assessment_id}/answers",
                json=answers_payload(process_key, values),
            )
            assert response.status_code == 200, response.text
    return _answer


@pytest.fixture
def submitted_assessment(client, create_assessment, answer_all):
    """Factory: a SUBMITTED assessment built from ``answers``."""
    def _submitted(answers=None, company_id=None):
        assessment = create_assessment(company_id=company_id)
        answer_all(assessment["id"], answers)
        response = client.post(f"/api/v1/assessments/{assessment['id']}/submit")
        assert response.status_code == 200, response.text
        return assessment["id"]
    return _submitted
