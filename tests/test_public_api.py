"""Formulário público do produtor (/api/c/{token})"""
import json

from sqlalchemy import select

from app.models import Checklist, PropertyMap, Response
from tests.conftest import make_checklist


def _items(template):
    return {item.name: item.id for item in template.items}


async def _stored_responses(session_factory, checklist_id):
    async with session_factory() as session:
        result = await session.execute(select(Response).where(Response.checklist_id == checklist_id))
        return {(r.item_id, r.field_id): r for r in result.scalars().all()}


async def _stored_checklist(session_factory, checklist_id):
    async with session_factory() as session:
        return await session.get(Checklist, checklist_id)


async def test_get_public_checklist(client, checklist, template, producer):
    response = await client.get(f"/api/c/{checklist.public_token}")

    assert response.status_code == 200
    data = response.json()
    assert data["checklist"]["id"] == checklist.id
    assert data["template"]["name"] == template.template.name
    assert len(data["template"]["sections"]) == 2
    assert data["producer"]["id"] == producer.id
    assert data["responses"] == []


async def test_unknown_token(client):
    response = await client.get("/api/c/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Checklist not found"}


async def test_save_draft_moves_to_in_progress(client, session_factory, checklist, template):
    items = _items(template)

    response = await client.post(
        f"/api/c/{checklist.public_token}/save",
        json={"responses": {items["Licença ambiental"]: {"answer": "LO 123/2024"}}},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "status": "IN_PROGRESS", "saved": 1}
    stored = await _stored_responses(session_factory, checklist.id)
    assert stored[(items["Licença ambiental"], "__global__")].answer == "LO 123/2024"


async def test_save_closed_checklist(client, db, workspace, template, producer):
    closed = await make_checklist(db, workspace, template.template.id, producer, status="PENDING_REVIEW")

    response = await client.post(f"/api/c/{closed.public_token}/save", json={"responses": {}})

    assert response.status_code == 400
    assert response.json() == {"error": "Checklist is closed for editing"}


async def test_submit_stores_responses_per_field(client, session_factory, checklist, template):
    items = _items(template)
    talhao = items["Aplicação de defensivos"]

    response = await client.post(
        f"/api/c/{checklist.public_token}/submit",
        json={"responses": {
            items["Licença ambiental"]: {"answer": "LO 123/2024", "status": "Aprovado", "quantity": 0},
            f"{talhao}::talhao-1": {"answer": ["glifosato", "2,4-D"], "observationValue": "safra 24/25"},
            f"{talhao}::talhao-2": {"answer": "nenhum"},
            "__selected_fields": ["talhao-1", "talhao-2"],
        }},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "PENDING_REVIEW"
    assert response.json()["saved"] == 3

    stored = await _stored_responses(session_factory, checklist.id)
    licence = stored[(items["Licença ambiental"], "__global__")]
    assert licence.status == "APPROVED"
    assert licence.quantity == "0"
    first = stored[(talhao, "talhao-1")]
    assert json.loads(first.answer) == ["glifosato", "2,4-D"]
    assert first.observation == "safra 24/25"
    assert first.status == "PENDING_VERIFICATION"
    assert (talhao, "talhao-2") in stored

    saved = await _stored_checklist(session_factory, checklist.id)
    assert saved.status == "PENDING_REVIEW"
    assert saved.submitted_at is not None


async def test_resubmit_updates_same_row(client, session_factory, checklist, template):
    item_id = _items(template)["Licença ambiental"]
    url = f"/api/c/{checklist.public_token}/submit"

    await client.post(url, json={"responses": {item_id: {"answer": "primeira"}}})
    await client.post(url, json={"responses": {item_id: {"answer": "segunda"}}})

    stored = await _stored_responses(session_factory, checklist.id)
    assert len(stored) == 1
    assert stored[(item_id, "__global__")].answer == "segunda"


async def test_changed_answer_clears_rejection(client, db, session_factory, checklist, template):
    items = _items(template)
    rejected_id = items["Licença ambiental"]
    unchanged_id = items["CAR"]
    db.add_all([
        Response(checklist_id=checklist.id, item_id=rejected_id, field_id="__global__",
                 answer="vencida", status="REJECTED", rejection_reason="Licença vencida"),
        Response(checklist_id=checklist.id, item_id=unchanged_id, field_id="__global__",
                 answer="car.pdf", status="REJECTED"),
    ])
    await db.commit()

    response = await client.post(
        f"/api/c/{checklist.public_token}/submit",
        json={"responses": {
            rejected_id: {"answer": "renovada", "status": "APPROVED"},
            unchanged_id: {"answer": "car.pdf", "status": "REJECTED"},
        }},
    )

    assert response.status_code == 200
    stored = await _stored_responses(session_factory, checklist.id)
    assert stored[(rejected_id, "__global__")].status == "PENDING_VERIFICATION"
    assert stored[(rejected_id, "__global__")].answer == "renovada"
    assert stored[(unchanged_id, "__global__")].status == "REJECTED"


async def test_submit_finalized_checklist_is_rejected(client, db, session_factory, workspace, template, producer):
    finalized = await make_checklist(db, workspace, template.template.id, producer, status="FINALIZED")
    item_id = _items(template)["Licença ambiental"]

    response = await client.post(
        f"/api/c/{finalized.public_token}/submit",
        json={"responses": {item_id: {"answer": "tarde demais"}}},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Checklist is already finalized"}
    assert await _stored_responses(session_factory, finalized.id) == {}
    assert (await _stored_checklist(session_factory, finalized.id)).status == "FINALIZED"


async def test_unknown_item_rejects_whole_payload(client, session_factory, checklist, template):
    item_id = _items(template)["Licença ambiental"]

    response = await client.post(
        f"/api/c/{checklist.public_token}/submit",
        json={"responses": {item_id: {"answer": "ok"}, "item-fantasma": {"answer": "?"}}},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Unknown items: item-fantasma"}
    assert await _stored_responses(session_factory, checklist.id) == {}
    assert (await _stored_checklist(session_factory, checklist.id)).status == "SENT"


async def test_submit_copies_property_map_to_producer(client, session_factory, checklist, template, producer):
    item_id = _items(template)["Mapa da propriedade"]
    points = [
        {"lat": -22.9, "lng": -47.06},
        {"lat": -22.9, "lng": -47.05},
        {"lat": -22.89, "lng": -47.05},
    ]
    answer = {
        "propertyLocation": {"lat": -22.9, "lng": -47.06},
        "fields": [{"id": "talhao-1", "name": "Talhão 1", "points": points}],
        "city": "Campinas",
        "state": "SP",
    }

    response = await client.post(
        f"/api/c/{checklist.public_token}/submit",
        json={"responses": {item_id: {"answer": answer}}},
    )

    assert response.status_code == 200
    async with session_factory() as session:
        property_map = await session.get(PropertyMap, f"map-{checklist.id}-{item_id}")
    assert property_map is not None
    assert property_map.producer_id == producer.id
    assert property_map.name == "Mapa do Checklist: Certificação Orgânica"
    assert property_map.fields[0]["area"].endswith(" ha")
    assert property_map.city == "Campinas"
