# Pytest fixtures and test database setup.
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("OPENAI_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from lms_quiz.database import Base, SessionLocal, engine
from lms_quiz.main import app

AUTHOR = {"X-User-Id": "instructor-1", "X-User-Role": "INSTRUCTOR"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "ADMIN"}
LEARNER = {"X-User-Id": "learner-1", "X-User-Role": "USER"}
OTHER_LEARNER = {"X-User-Id": "learner-2", "X-User-Role": "USER"}


@pytest.fixture()
def author_headers():
    return dict(AUTHOR)


@pytest.fixture()
def admin_headers():
    return dict(ADMIN)


@pytest.fixture()
def learner_headers():
    return dict(LEARNER)


@pytest.fixture()
def other_learner_headers():
    return dict(OTHER_LEARNER)

# Build question payloads with a configurable count; every answer key is option 0.
@pytest.fixture()
def build_questions():
    def _build(count: int = 3, timeout: int = 30):
        return [
            {
                "question": f"Question {idx}?",
                "options": ["Option A", "Option B", "Option C", "Option D"],
                "correct_option": 0,
                "timeout": timeout,
            }
            for idx in range(1, count + 1)
        ]

    return _build

# Two questions with known answers: B for the first, W for the second.
@pytest.fixture()
def sample_questions():
    return [
        {
            "question": "Which letter comes second?",
            "options": ["A", "B", "C", "D"],
            "correct_option": 1,
            "timeout": 30,
        },
        {
            "question": "Which letter is last in this list?",
            "options": ["X", "Y", "Z", "W"],
            "correct_option": 3,
            "timeout": 30,
        },
    ]

# Fresh tables for every test on the shared in-memory database.
@pytest.fixture()
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

# Provide a FastAPI test client backed by a clean test database.
@pytest.fixture()
def client():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def course_id(client, author_headers):
    response = client.post("/courses", json={"title": "Algebra"}, headers=author_headers)
    assert response.status_code == 201
    return response.json()["id"]

# Create a quiz through the API and return its full (author) payload.
@pytest.fixture()
def create_quiz(client, author_headers, course_id):
    def _create(questions, title="Sample Quiz", description="A sample quiz"):
        response = client.post(
            "/quizzes",
            json={
                "course_id": course_id,
                "title": title,
                "description": description,
                "questions": questions,
            },
            headers=author_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create
