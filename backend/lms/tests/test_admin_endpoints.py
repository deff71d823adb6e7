"""Tests for admin user management and role based permissions."""

import asyncio
import pathlib
import sys

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel, select

# Allow importing the lms package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from lms.main import app
from lms.database import get_session
from lms.models import Permission, UserPermissionLink
from lms.crud import ensure_permissions_exist
from lms.acl import ALL_PERMISSIONS, LEARNER_PERMISSIONS, ROLE_DEFAULT_PERMISSIONS


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

    return TestSession


async def _permission_names(TestSession, user_id):
    async with TestSession() as session:
        result = await session.execute(
            select(Permission.name)
            .join(UserPermissionLink)
            .where(UserPermissionLink.user_id == user_id)
        )
        return {row[0] for row in result.all()}


def test_first_user_is_admin_and_roles_reassign_permissions():
    async def run():
        TestSession = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/needs-admin")
            assert resp.json() == {"needs_admin": True}

            resp = await client.post(
                "/register",
                json={"name": "Admin", "email": "admin@example.com", "password": "pass"},
            )
            assert resp.status_code == 200
            assert resp.json()["role"] == "admin"
            admin_id = resp.json()["id"]

            resp = await client.post(
                "/register",
                json={"name": "User", "email": "user@example.com", "password": "pass"},
            )
            assert resp.status_code == 200
            assert resp.json()["role"] == "learner"
            user_id = resp.json()["id"]
            assert await _permission_names(TestSession, user_id) == set(LEARNER_PERMISSIONS)

            resp = await client.post(
                "/login", json={"email": "admin@example.com", "password": "pass"}
            )
            admin_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
            resp = await client.post(
                "/login", json={"email": "user@example.com", "password": "wrong"}
            )
            assert resp.status_code == 401
            assert resp.json()["detail"]["code"] == "auth_invalid_credentials"
            resp = await client.post(
                "/login", json={"email": "user@example.com", "password": "pass"}
            )
            user_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

            resp = await client.get("/admin/users", headers=user_headers)
            assert resp.status_code == 403
            resp = await client.get("/admin/users", headers=admin_headers)
            assert resp.status_code == 200
            assert {u["id"] for u in resp.json()} == {admin_id, user_id}

            resp = await client.put(
                f"/admin/users/{user_id}", headers=admin_headers, json={"role": "wizard"}
            )
            assert resp.status_code == 400

            resp = await client.put(
                f"/admin/users/{user_id}",
                headers=admin_headers,
                json={"role": "instructor", "name": "Mentor"},
            )
            assert resp.status_code == 200
            assert resp.json()["role"] == "instructor"
            assert resp.json()["name"] == "Mentor"
            assert await _permission_names(TestSession, user_id) == set(
                ROLE_DEFAULT_PERMISSIONS["instructor"]
            )

            resp = await client.get("/users/me", headers=user_headers)
            assert resp.status_code == 200
            assert "author_quizzes" in resp.json()["permissions"]

            resp = await client.put(
                "/users/me", headers=user_headers, json={"bio": "Teaches chemistry"}
            )
            assert resp.status_code == 200
            assert resp.json()["bio"] == "Teaches chemistry"

    asyncio.run(run())


def test_admin_deletes_users_but_not_themselves():
    async def run():
        TestSession = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post(
                "/register",
                json={"name": "Admin", "email": "admin2@example.com", "password": "pass"},
            )
            admin_id = resp.json()["id"]
            resp = await client.post(
                "/register",
                json={"name": "Gone", "email": "gone@example.com", "password": "pass"},
            )
            gone_id = resp.json()["id"]

            resp = await client.post(
                "/login", json={"email": "admin2@example.com", "password": "pass"}
            )
            admin_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

            resp = await client.delete(f"/admin/users/{admin_id}", headers=admin_headers)
            assert resp.status_code == 400

            resp = await client.delete(f"/admin/users/{gone_id}", headers=admin_headers)
            assert resp.status_code == 204
            resp = await client.get(f"/admin/users/{gone_id}", headers=admin_headers)
            assert resp.status_code == 404
            assert await _permission_names(TestSession, gone_id) == set()

    asyncio.run(run())
