"""Tests for AI lesson summaries and question answering with a fake model."""

import asyncio
import pathlib
import sys

from httpx import AsyncClient, ASGITransport
from openai import OpenAIError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel, select

# Allow importing the lms package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from lms.main import app
from lms.database import get_session
from lms.models import Course, Lesson, LessonQuestion, User
from lms.auth import get_password_hash
from lms.ai import get_completion_client, summary_prompt, qa_prompt
from lms.crud import ensure_permissions_exist, create_user, enroll_user
from lms.acl import ALL_PERMISSIONS


class FakeCompletionClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.summaries = 0
        self.questions = []

    async def summarize(self, lesson):
        if self.fail:
            raise OpenAIError("model unavailable")
        self.summaries += 1
        return f"Summary of {lesson.title}"

    async def answer(self, lesson, question):
        if self.fail:
            raise OpenAIError("model unavailable")
        self.questions.append(question)
        return f"Answer about {lesson.title}"


async def _setup_test_db(client_stub):
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_session():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_completion_client] = lambda: client_stub

    async with TestSession() as session:
        await ensure_permissions_exist(session, ALL_PERMISSIONS)
        admin = await create_user(
            session,
            User(
                name="Admin",
                email="admin@example.com",
                password_hash=get_password_hash("pass"),
                role="admin",
            ),
        )
        learner = await create_user(
            session,
            User(
                name="Lee",
                email="lee@example.com",
                password_hash=get_password_hash("pass"),
            ),
        )
        course = Course(
            title="Astronomy", slug="astronomy", instructor_id=admin.id, status="published"
        )
        session.add(course)
        await session.commit()
        lesson = Lesson(
            course_id=course.id,
            title="Planets",
            slug="planets",
            content="<p>Eight planets orbit the sun.</p>",
            lesson_order=1,
        )
        session.add(lesson)
        await session.commit()
        await enroll_user(session, learner.id, course.id)
        lesson_id = lesson.id

    return TestSession, lesson_id


async def _headers(client, email):
    resp = await client.post("/login", json={"email": email, "password": "pass"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_summary_is_generated_once_and_cached():
    async def run():
        fake = FakeCompletionClient()
        TestSession, lesson_id = await _setup_test_db(fake)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            learner = await _headers(client, "lee@example.com")

            resp = await client.post(f"/lessons/{lesson_id}/summary", headers=learner)
            assert resp.status_code == 200
            assert resp.json()["summary"] == "Summary of Planets"
            first = resp.json()["generated_at"]

            resp = await client.post(f"/lessons/{lesson_id}/summary", headers=learner)
            assert resp.status_code == 200
            assert resp.json()["generated_at"] == first
            assert fake.summaries == 1

    asyncio.run(run())


def test_questions_are_answered_and_stored():
    async def run():
        fake = FakeCompletionClient()
        TestSession, lesson_id = await _setup_test_db(fake)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            learner = await _headers(client, "lee@example.com")
            admin = await _headers(client, "admin@example.com")

            resp = await client.post(
                f"/lessons/{lesson_id}/ask", headers=learner, json={"question": "  "}
            )
            assert resp.status_code == 400

            resp = await client.post(
                f"/lessons/{lesson_id}/ask",
                headers=learner,
                json={"question": " Which planet is largest? "},
            )
            assert resp.status_code == 200
            assert resp.json()["answer"] == "Answer about Planets"
            assert fake.questions == ["Which planet is largest?"]

            resp = await client.get(f"/lessons/{lesson_id}/questions", headers=learner)
            assert [q["question"] for q in resp.json()] == ["Which planet is largest?"]
            resp = await client.get(f"/lessons/{lesson_id}/questions", headers=admin)
            assert resp.json() == []

            async with TestSession() as session:
                stored = (await session.execute(select(LessonQuestion))).scalars().all()
                assert len(stored) == 1

            # Admin switches the assistant off
            resp = await client.put(
                "/settings/", headers=admin, json={"ai_features_enabled": False}
            )
            assert resp.status_code == 200
            resp = await client.post(
                f"/lessons/{lesson_id}/ask", headers=learner, json={"question": "Why?"}
            )
            assert resp.status_code == 403
            assert resp.json()["detail"]["code"] == "ai_disabled"
            resp = await client.post(f"/lessons/{lesson_id}/summary", headers=learner)
            assert resp.status_code == 403

    asyncio.run(run())


def test_provider_failure_returns_bad_gateway():
    async def run():
        TestSession, lesson_id = await _setup_test_db(FakeCompletionClient(fail=True))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            learner = await _headers(client, "lee@example.com")
            resp = await client.post(f"/lessons/{lesson_id}/summary", headers=learner)
            assert resp.status_code == 502
            assert resp.json()["detail"]["code"] == "ai_unavailable"

            async with TestSession() as session:
                stored = (await session.execute(select(LessonQuestion))).scalars().all()
                assert stored == []

    asyncio.run(run())


def test_prompts_follow_content_type():
    text = Lesson(course_id=1, title="Planets", slug="planets", content="Mars is red")
    video = Lesson(course_id=1, title="Moons", slug="moons", content_type="video")
    slides = Lesson(course_id=1, title="Stars", slug="stars", content_type="slides")

    assert "Mars is red" in summary_prompt(text)
    assert "video lesson" in summary_prompt(video)
    assert "slides lesson" in summary_prompt(slides)
    assert "Why red?" in qa_prompt(text, "Why red?")
    assert '"Moons"' in qa_prompt(video, "How many?")
