"""Produtores: validação, designação de supervisores e visibilidade"""
from sqlalchemy import select

from app.models import Producer, UserRole
from tests.conftest import auth_headers, make_checklist, make_user


async def test_brazilian_producer_requires_cpf(client, admin_headers):
    response = await client.post("/api/producers", json={"name": "Maria Souza"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "CPF is required for Brazilian producers"}


async def test_foreign_producer_without_cpf(client, admin_headers):
    response = await client.post(
        "/api/producers",
        json={"name": "Juan Pérez", "countryCode": "py"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["country_code"] == "PY"
    assert data["cpf"] is None
    assert data["maps"] == []


async def test_cpf_is_normalized_and_unique(client, admin_headers, producer):
    response = await client.post(
        "/api/producers",
        json={"name": "Outro Produtor", "cpf": "529.982.247-25"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json() == {"error": "CPF already registered in this workspace"}

    invalid = await client.post(
        "/api/producers",
        json={"name": "Outro Produtor", "cpf": "123"},
        headers=admin_headers,
    )
    assert invalid.status_code == 422


async def test_supervisor_is_assigned_on_create(client, supervisor, supervisor_headers):
    response = await client.post(
        "/api/producers",
        json={"name": "Ana Lima", "cpf": "11144477735"},
        headers=supervisor_headers,
    )

    assert response.status_code == 201
    assert [s["id"] for s in response.json()["supervisors"]] == [supervisor.id]


async def test_admin_assigns_supervisors(client, db, workspace, admin_headers, supervisor):
    other = await make_user(db, "campo@example.com", UserRole.SUPERVISOR, workspace)

    response = await client.post(
        "/api/producers",
        json={"name": "Ana Lima", "cpf": "11144477735", "supervisorIds": [supervisor.id, other.id]},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert {s["id"] for s in response.json()["supervisors"]} == {supervisor.id, other.id}

    invalid = await client.post(
        "/api/producers",
        json={"name": "Sem Nome", "cpf": "39053344705", "supervisorIds": ["missing"]},
        headers=admin_headers,
    )
    assert invalid.status_code == 400


async def test_supervisor_sees_only_assigned_producers(client, db, workspace, producer, supervisor_headers):
    db.add(Producer(
        workspace_id=workspace.id,
        name="Produtor Sem Supervisor",
        cpf="11144477735",
        assigned_supervisors=[],
        maps=[],
    ))
    await db.commit()

    response = await client.get("/api/producers", headers=supervisor_headers)
    assert [p["id"] for p in response.json()] == [producer.id]

    others = await make_user(db, "outro@example.com", UserRole.SUPERVISOR, workspace)
    forbidden = await client.get(f"/api/producers/{producer.id}", headers=auth_headers(others))
    assert forbidden.status_code == 403
    assert forbidden.json() == {"error": "Forbidden: Not assigned to this producer"}


async def test_list_search_and_counts(client, admin_headers, producer, checklist):
    response = await client.get("/api/producers", params={"search": "joão"}, headers=admin_headers)

    assert response.status_code == 200
    assert len(response.json()) == 1
    assert response.json()[0]["checklists_count"] == 1

    empty = await client.get("/api/producers", params={"search": "inexistente"}, headers=admin_headers)
    assert empty.json() == []


async def test_supervisor_cannot_reassign(client, producer, supervisor_headers, admin_headers):
    response = await client.put(
        f"/api/producers/{producer.id}",
        json={"supervisorIds": []},
        headers=supervisor_headers,
    )
    assert response.status_code == 403

    cleared = await client.put(
        f"/api/producers/{producer.id}",
        json={"supervisorIds": [], "city": "Ribeirão Preto"},
        headers=admin_headers,
    )
    assert cleared.status_code == 200
    assert cleared.json()["supervisors"] == []
    assert cleared.json()["city"] == "Ribeirão Preto"


async def test_producer_with_checklists_cannot_be_deleted(client, session_factory, workspace, producer, template, admin_headers):
    async with session_factory() as session:
        await make_checklist(session, workspace, template.template.id, producer)

    response = await client.delete(f"/api/producers/{producer.id}", headers=admin_headers)
    assert response.status_code == 400


async def test_delete_producer(client, session_factory, producer, admin_headers):
    response = await client.delete(f"/api/producers/{producer.id}", headers=admin_headers)

    assert response.status_code == 200
    async with session_factory() as session:
        remaining = (await session.execute(select(Producer.id))).scalars().all()
    assert remaining == []


async def test_producer_from_other_workspace(client, db, other_workspace, admin_headers):
    foreign = Producer(
        workspace_id=other_workspace.id,
        name="Produtor Externo",
        cpf="52998224725",
        assigned_supervisors=[],
        maps=[],
    )
    db.add(foreign)
    await db.commit()

    response = await client.get(f"/api/producers/{foreign.id}", headers=admin_headers)
    assert response.status_code == 403
