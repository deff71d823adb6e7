"""Tests for per-lesson learner notes."""

import asyncio
import pathlib
import sys

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

# Allow importing the lms package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from lms.main import app
from lms.database import get_session
from lms.models import Course, Lesson, User
from lms.auth import get_password_hash
from lms.crud import ensure_permissions_exist, create_user, enroll_user
from lms.acl import ALL_PERMISSIONS


async def _setup_test_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_session():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with TestSession() as session:
        await ensure_permissions_exist(session, ALL_PERMISSIONS)
        instructor = await create_user(
            session,
            User(
                name="Tia",
                email="tia@example.com",
                password_hash=get_password_hash("pass"),
                role="instructor",
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
        other = await create_user(
            session,
            User(
                name="Ola",
                email="ola@example.com",
                password_hash=get_password_hash("pass"),
            ),
        )
        course = Course(
            title="Knitting", slug="knitting", instructor_id=instructor.id, status="published"
        )
        session.add(course)
        await session.commit()
        lesson = Lesson(course_id=course.id, title="Cast on", slug="cast-on", lesson_order=1)
        session.add(lesson)
        await session.commit()
        await enroll_user(session, learner.id, course.id)
        await enroll_user(session, other.id, course.id)
        lesson_id = lesson.id

    return TestSession, lesson_id


async def _headers(client, email):
    resp = await client.post("/login", json={"email": email, "password": "pass"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_notes_are_private_and_upserted():
    async def run():
        TestSession, lesson_id = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            learner = await _headers(client, "lee@example.com")
            other = await _headers(client, "ola@example.com")

            resp = await client.get(f"/lessons/{lesson_id}/notes", headers=learner)
            assert resp.status_code == 404

            resp = await client.put(
                f"/lessons/{lesson_id}/notes", headers=learner, json={"content": "   "}
            )
            assert resp.status_code == 400

            resp = await client.put(
                f"/lessons/{lesson_id}/notes",
                headers=learner,
                json={"content": "<p>Long tail cast on</p>"},
            )
            assert resp.status_code == 200
            note_id = resp.json()["id"]

            resp = await client.put(
                f"/lessons/{lesson_id}/notes",
                headers=learner,
                json={"content": "<p>Use the thumb method</p>"},
            )
            assert resp.status_code == 200
            assert resp.json()["id"] == note_id
            assert resp.json()["updated_at"] is not None

            resp = await client.get(f"/lessons/{lesson_id}/notes", headers=learner)
            assert resp.json()["content"] == "<p>Use the thumb method</p>"

            # Another learner sees only their own notes
            resp = await client.get(f"/lessons/{lesson_id}/notes", headers=other)
            assert resp.status_code == 404

            resp = await client.delete(f"/lessons/{lesson_id}/notes", headers=learner)
            assert resp.status_code == 204
            resp = await client.delete(f"/lessons/{lesson_id}/notes", headers=learner)
            assert resp.status_code == 404

            resp = await client.get("/lessons/9999/notes", headers=learner)
            assert resp.status_code == 404

    asyncio.run(run())
