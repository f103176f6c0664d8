"""
Fixtures compartilhadas: banco SQLite em memória por teste e cliente HTTP
apontando para a aplicação ASGI
"""
import os

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("CHECKLIST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_db
from app.core import create_access_token, get_password_hash
from app.core.rate_limit import limiter
from app.models import User, UserRole, Workspace, Producer, Checklist
from app.schemas import TemplateCreate
from app.services.template_service import create_template, load_template_structure
from app.services.checklist_service import new_checklist

limiter.enabled = False

PASSWORD = "secret-password"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


async def make_user(db, email: str, role: UserRole, workspace=None, cpf=None) -> User:
    user = User(
        email=email,
        hashed_password=PASSWORD_HASH,
        name=email.split("@")[0].title(),
        role=role.value,
        workspace_id=workspace.id if workspace else None,
        cpf=cpf,
    )
    db.add(user)
    await db.commit()
    return user


async def make_template(db, workspace, payload: dict):
    template = await create_template(db, TemplateCreate(**payload), workspace.id)
    await db.commit()
    return await load_template_structure(db, template.id)


async def make_checklist(db, workspace, template_id, producer=None, status=None, **extra) -> Checklist:
    checklist = new_checklist(
        workspace_id=workspace.id,
        template_id=template_id,
        producer_id=producer.id if producer else None,
        **extra,
    )
    if status:
        checklist.status = status
    db.add(checklist)
    await db.commit()
    return checklist


BASIC_TEMPLATE = {
    "name": "Certificação Orgânica",
    "folder": "Orgânicos",
    "sections": [
        {
            "name": "Documentação",
            "items": [
                {"name": "CAR", "type": "FILE", "order": 0},
                {"name": "Licença ambiental", "type": "TEXT", "order": 1},
                {"name": "Mapa da propriedade", "type": "PROPERTY_MAP", "order": 2, "required": False},
            ],
        },
        {
            "name": "Talhões",
            "order": 1,
            "iterateOverFields": True,
            "items": [{"name": "Aplicação de defensivos", "type": "TEXT"}],
        },
    ],
}


@pytest_asyncio.fixture
async def workspace(db):
    workspace = Workspace(name="Cooperativa Central", slug="central")
    db.add(workspace)
    await db.commit()
    return workspace


@pytest_asyncio.fixture
async def other_workspace(db):
    workspace = Workspace(name="Outra Cooperativa", slug="outra")
    db.add(workspace)
    await db.commit()
    return workspace


@pytest_asyncio.fixture
async def superadmin(db, workspace):
    return await make_user(db, "root@example.com", UserRole.SUPERADMIN, workspace)


@pytest_asyncio.fixture
async def admin(db, workspace):
    return await make_user(db, "admin@example.com", UserRole.ADMIN, workspace)


@pytest_asyncio.fixture
async def supervisor(db, workspace):
    return await make_user(db, "supervisor@example.com", UserRole.SUPERVISOR, workspace)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def supervisor_headers(supervisor):
    return auth_headers(supervisor)


@pytest_asyncio.fixture
async def producer(db, workspace, supervisor):
    producer = Producer(
        workspace_id=workspace.id,
        name="João da Silva",
        cpf="52998224725",
        phone="(11) 98765-4321",
        city="Campinas",
        state="SP",
        assigned_supervisors=[supervisor],
        maps=[],
    )
    db.add(producer)
    await db.commit()
    return producer


@pytest_asyncio.fixture
async def template(db, workspace):
    return await make_template(db, workspace, BASIC_TEMPLATE)


@pytest_asyncio.fixture
async def checklist(db, workspace, template, producer):
    return await make_checklist(db, workspace, template.template.id, producer)
