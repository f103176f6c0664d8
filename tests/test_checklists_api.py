"""Checklists: criação, revisão, finalização e checklists filhos"""
import logging
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import select

from app.api import checklists as checklists_api
from app.models import AuditLog, Checklist, ChecklistType, Response, ScopeAnswer, UserRole
from app.services import audit as audit_service
from tests.conftest import auth_headers, make_checklist, make_template, make_user

LEVEL_TEMPLATE = {
    "name": "Água Responsável",
    "isLevelBased": True,
    "levelAccumulative": True,
    "levels": [{"name": "Bronze", "order": 1}, {"name": "Prata", "order": 2}],
    "classifications": [{"name": "Essencial", "code": "E", "requiredPercentage": 100}],
    "scopeFields": [{"name": "Possui irrigação?", "type": "YES_NO"}],
    "sections": [
        {"name": "Básico", "levelIndex": 0, "items": [{"name": "Outorga", "classificationIndex": 0}]},
        {
            "name": "Avançado",
            "order": 1,
            "levelIndex": 1,
            "items": [
                {
                    "name": "Reuso de água",
                    "classificationIndex": 0,
                    "conditions": [{"scopeFieldIndex": 0, "value": "NO", "action": "REMOVE"}],
                },
            ],
        },
    ],
}


def _items(template):
    return {item.name: item.id for item in template.items}


async def _responses(session_factory, checklist_id):
    async with session_factory() as session:
        result = await session.execute(select(Response).where(Response.checklist_id == checklist_id))
        return {(r.item_id, r.field_id): r for r in result.scalars().all()}


async def _audit_actions(session_factory, checklist_id):
    async with session_factory() as session:
        result = await session.execute(
            select(AuditLog.action).where(AuditLog.checklist_id == checklist_id).order_by(AuditLog.created_at)
        )
        return list(result.scalars().all())


async def _add_responses(db, checklist, rows):
    for item_id, status in rows:
        db.add(Response(checklist_id=checklist.id, item_id=item_id, field_id="__global__",
                        answer="resposta", status=status))
    await db.commit()


async def test_create_checklist(client, admin_headers, template, producer):
    response = await client.post(
        "/api/checklists",
        json={"templateId": template.template.id, "producerId": producer.id, "sentVia": "EMAIL"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    data = response.json()
    checklist = data["checklist"]
    assert checklist["status"] == "SENT"
    assert checklist["type"] == "ORIGINAL"
    assert checklist["sent_via"] == "EMAIL"
    assert checklist["public_token"]
    assert data["link"].endswith(f"/c/{checklist['public_token']}")
    assert data["prefilled"] is False


async def test_create_requires_assignment(client, db, workspace, template, producer):
    outsider = await make_user(db, "outsider@example.com", UserRole.SUPERVISOR, workspace)

    response = await client.post(
        "/api/checklists",
        json={"templateId": template.template.id, "producerId": producer.id},
        headers=auth_headers(outsider),
    )

    assert response.status_code == 403


async def test_create_with_unknown_template_or_level(client, admin_headers, template):
    missing = await client.post("/api/checklists", json={"templateId": "missing"}, headers=admin_headers)
    assert missing.status_code == 404

    bad_level = await client.post(
        "/api/checklists",
        json={"templateId": template.template.id, "targetLevelId": "missing"},
        headers=admin_headers,
    )
    assert bad_level.status_code == 400


async def test_prefill_copies_approved_responses(client, db, session_factory, workspace, template, producer, admin_headers):
    items = _items(template)
    source = await make_checklist(db, workspace, template.template.id, producer, status="FINALIZED")
    await _add_responses(db, source, [(items["CAR"], "APPROVED"), (items["Licença ambiental"], "REJECTED")])
    db.add(ScopeAnswer(checklist_id=source.id, scope_field_id="escopo-1", value="SIM"))
    await db.commit()

    available = await client.get(
        "/api/checklists/available-for-prefill",
        params={"templateId": template.template.id},
        headers=admin_headers,
    )
    assert [c["id"] for c in available.json()] == [source.id]

    response = await client.post(
        "/api/checklists",
        json={"templateId": template.template.id, "producerId": producer.id, "prefillFromChecklistId": source.id},
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.json()["prefilled"] is True
    assert response.json()["prefilledCount"] == 1
    new_id = response.json()["checklist"]["id"]
    stored = await _responses(session_factory, new_id)
    assert list(stored) == [(items["CAR"], "__global__")]
    assert stored[(items["CAR"], "__global__")].status == "PENDING_VERIFICATION"


async def test_available_for_prefill_requires_template(client, admin_headers):
    response = await client.get("/api/checklists/available-for-prefill", headers=admin_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "templateId is required"}


async def test_responses_for_copy(client, db, workspace, template, producer, checklist, admin_headers):
    not_finished = await client.get(f"/api/checklists/{checklist.id}/responses-for-copy", headers=admin_headers)
    assert not_finished.status_code == 404

    items = _items(template)
    source = await make_checklist(db, workspace, template.template.id, producer, status="APPROVED")
    await _add_responses(db, source, [(items["CAR"], "APPROVED"), (items["Licença ambiental"], "MISSING")])

    response = await client.get(f"/api/checklists/{source.id}/responses-for-copy", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["producerName"] == producer.name
    assert [r["itemId"] for r in data["responses"]] == [items["CAR"]]


async def test_list_checklists(client, db, workspace, template, producer, checklist, supervisor_headers):
    await make_checklist(db, workspace, template.template.id, producer, status="FINALIZED", parent_id=checklist.id,
                         checklist_type=checklists_api.ChecklistType.CORRECTION)

    response = await client.get("/api/checklists", params={"status": "SENT"}, headers=supervisor_headers)

    assert response.status_code == 200
    [data] = response.json()
    assert data["id"] == checklist.id
    assert data["template_name"] == template.template.name
    assert data["producer_name"] == producer.name
    assert data["status_label"] == "Enviado"
    assert data["children"][0]["type_label"] == "Correção"

    by_producer = await client.get("/api/checklists", params={"producer": "529982"}, headers=supervisor_headers)
    assert len(by_producer.json()) == 2


async def test_get_checklist_detail(client, db, checklist, template, admin_headers):
    items = _items(template)
    await _add_responses(db, checklist, [(items["CAR"], "APPROVED"), (items["Licença ambiental"], "REJECTED")])

    response = await client.get(f"/api/checklists/{checklist.id}", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "SENT"
    assert data["response_summary"]["APPROVED"] == 1
    assert data["response_summary"]["REJECTED"] == 1
    assert data["response_summary"]["MISSING"] == 0
    labels = {r["item_id"]: r["status_label"] for r in data["responses"]}
    assert labels[items["CAR"]] == "Aprovado"
    assert data["link"].endswith(checklist.public_token)


async def test_checklist_from_other_workspace(client, db, other_workspace, admin_headers):
    foreign_template = await make_template(db, other_workspace, {"name": "Externo"})
    foreign = await make_checklist(db, other_workspace, foreign_template.template.id)

    assert (await client.get(f"/api/checklists/{foreign.id}", headers=admin_headers)).status_code == 403
    assert (await client.get("/api/checklists/missing", headers=admin_headers)).status_code == 404


async def test_review_rejects_and_audits(client, session_factory, checklist, template, supervisor_headers):
    item_id = _items(template)["Licença ambiental"]

    response = await client.put(
        f"/api/checklists/{checklist.id}/responses/{item_id}",
        json={"status": "REJECTED", "rejectionReason": "Licença vencida"},
        headers=supervisor_headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "REJECTED"
    assert response.json()["rejection_reason"] == "Licença vencida"
    assert await _audit_actions(session_factory, checklist.id) == ["RESPONSE_REJECTED"]

    approved = await client.put(
        f"/api/checklists/{checklist.id}/responses/{item_id}",
        json={"status": "APPROVED"},
        headers=supervisor_headers,
    )
    assert approved.json()["rejection_reason"] is None
    assert approved.json()["reviewed_at"] is not None
    assert len(await _responses(session_factory, checklist.id)) == 1


async def test_review_invalid_status_and_item(client, checklist, template, supervisor_headers):
    item_id = _items(template)["CAR"]

    invalid = await client.put(
        f"/api/checklists/{checklist.id}/responses/{item_id}",
        json={"status": "MAYBE"},
        headers=supervisor_headers,
    )
    assert invalid.status_code == 400

    missing = await client.put(
        f"/api/checklists/{checklist.id}/responses/missing-item",
        json={"status": "APPROVED"},
        headers=supervisor_headers,
    )
    assert missing.status_code == 400
    assert missing.json() == {"error": "Unknown items: missing-item"}


async def test_review_rejects_item_of_other_template(client, db, session_factory, workspace, checklist, supervisor_headers):
    other = await make_template(db, workspace, LEVEL_TEMPLATE)
    foreign_item_id = _items(other)["Outorga"]

    response = await client.put(
        f"/api/checklists/{checklist.id}/responses/{foreign_item_id}",
        json={"status": "APPROVED"},
        headers=supervisor_headers,
    )

    assert response.status_code == 400
    assert response.json() == {"error": f"Unknown items: {foreign_item_id}"}
    assert await _responses(session_factory, checklist.id) == {}
    assert await _audit_actions(session_factory, checklist.id) == []


async def test_review_survives_audit_failure(client, session_factory, monkeypatch, caplog, checklist, template, supervisor_headers):
    item_id = _items(template)["Licença ambiental"]
    monkeypatch.setattr(audit_service, "AuditLog", MagicMock(side_effect=RuntimeError("tabela de auditoria indisponível")))

    with caplog.at_level(logging.ERROR, logger="app.services.audit"):
        response = await client.put(
            f"/api/checklists/{checklist.id}/responses/{item_id}",
            json={"status": "APPROVED"},
            headers=supervisor_headers,
        )

    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"
    assert "Falha ao gravar audit log RESPONSE_APPROVED" in caplog.text

    stored = (await _responses(session_factory, checklist.id))[(item_id, "__global__")]
    assert stored.status == "APPROVED"
    assert stored.reviewed_at is not None
    assert await _audit_actions(session_factory, checklist.id) == []


async def test_child_finalize_syncs_only_reviewed_rows(client, db, session_factory, workspace, template, producer, checklist, admin_headers):
    items = _items(template)
    db.add_all([
        Response(checklist_id=checklist.id, item_id=items["CAR"], field_id="__global__",
                 answer="orig", status="REJECTED"),
        Response(checklist_id=checklist.id, item_id=items["Licença ambiental"], field_id="__global__",
                 answer="orig2", status="APPROVED"),
    ])
    await db.commit()

    child = await make_checklist(db, workspace, template.template.id, producer,
                                 checklist_type=ChecklistType.CORRECTION, parent_id=checklist.id)
    db.add_all([
        Response(checklist_id=child.id, item_id=items["CAR"], field_id="__global__",
                 answer="new", status="PENDING_VERIFICATION"),
        Response(checklist_id=child.id, item_id=items["Licença ambiental"], field_id="__global__",
                 answer="new2", status="MISSING"),
        Response(checklist_id=child.id, item_id=items["Aplicação de defensivos"], field_id="f1",
                 answer="Sem aplicação", status="APPROVED"),
    ])
    await db.commit()

    response = await client.post(f"/api/checklists/{child.id}/finalize", headers=admin_headers)
    assert response.status_code == 200

    parent_rows = await _responses(session_factory, checklist.id)
    assert set(parent_rows) == {
        (items["CAR"], "__global__"),
        (items["Licença ambiental"], "__global__"),
        (items["Aplicação de defensivos"], "f1"),
    }
    assert (parent_rows[(items["CAR"], "__global__")].status, parent_rows[(items["CAR"], "__global__")].answer) == ("REJECTED", "orig")
    licenca = parent_rows[(items["Licença ambiental"], "__global__")]
    assert (licenca.status, licenca.answer) == ("APPROVED", "orig2")
    synced = parent_rows[(items["Aplicação de defensivos"], "f1")]
    assert (synced.status, synced.answer) == ("APPROVED", "Sem aplicação")


async def test_internal_fill_per_field(client, session_factory, supervisor, checklist, template, supervisor_headers):
    item_id = _items(template)["Aplicação de defensivos"]

    response = await client.put(
        f"/api/checklists/{checklist.id}/responses/{item_id}",
        json={"isInternal": True, "answer": "sem aplicação", "quantity": 0, "fieldId": "talhao-7"},
        headers=supervisor_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["field_id"] == "talhao-7"
    assert data["status"] == "PENDING_VERIFICATION"
    assert data["is_internal"] is True
    assert data["filled_by_id"] == supervisor.id
    assert data["quantity"] == "0"
    assert await _audit_actions(session_factory, checklist.id) == ["INTERNAL_FILL"]


async def test_patch_status(client, session_factory, checklist, admin_headers):
    invalid = await client.patch(f"/api/checklists/{checklist.id}/status", json={"status": "FINALIZED"}, headers=admin_headers)
    assert invalid.status_code == 400
    assert invalid.json() == {"error": "Invalid status"}

    response = await client.patch(f"/api/checklists/{checklist.id}/status", json={"status": "APPROVED"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"
    assert await _audit_actions(session_factory, checklist.id) == ["CHECKLIST_APPROVED"]


async def test_partial_finalize_and_child_flow(client, db, session_factory, checklist, template, admin_headers):
    items = _items(template)
    await _add_responses(db, checklist, [(items["CAR"], "REJECTED"), (items["Licença ambiental"], "APPROVED")])

    partial = await client.post(
        f"/api/checklists/{checklist.id}/partial-finalize",
        json={"createCorrection": True, "createCompletion": True, "generateActionPlan": True},
        headers=admin_headers,
    )
    assert partial.status_code == 200
    result = partial.json()
    assert result["generateActionPlan"] is True
    assert len(result["childIds"]) == 2
    correction_id = result["correctionId"]
    completion_id = result["completionId"]

    correction_rows = await _responses(session_factory, correction_id)
    assert set(correction_rows) == {(items["CAR"], "__global__")}
    assert correction_rows[(items["CAR"], "__global__")].status == "MISSING"
    completion_rows = await _responses(session_factory, completion_id)
    assert set(completion_rows) == {
        (items["Mapa da propriedade"], "__global__"),
        (items["Aplicação de defensivos"], "__global__"),
    }

    blocked = await client.post(f"/api/checklists/{checklist.id}/finalize", headers=admin_headers)
    assert blocked.status_code == 400
    body = blocked.json()
    assert body["error"].startswith("Não é possível finalizar")
    assert {c["id"] for c in body["openChildren"]} == {correction_id, completion_id}

    await client.put(
        f"/api/checklists/{correction_id}/responses/{items['CAR']}",
        json={"status": "APPROVED"},
        headers=admin_headers,
    )
    child_done = await client.post(f"/api/checklists/{correction_id}/finalize", headers=admin_headers)
    assert child_done.status_code == 200
    assert child_done.json()["checklist"]["status"] == "FINALIZED"
    assert "CHILD_CHECKLIST_FINALIZED_WITH_PARENT_SYNC" in await _audit_actions(session_factory, correction_id)

    parent_rows = await _responses(session_factory, checklist.id)
    assert parent_rows[(items["CAR"], "__global__")].status == "APPROVED"

    still_blocked = await client.post(f"/api/checklists/{checklist.id}/finalize", headers=admin_headers)
    assert [c["id"] for c in still_blocked.json()["openChildren"]] == [completion_id]

    async with session_factory() as session:
        completion = await session.get(Checklist, completion_id)
        completion.status = "FINALIZED"
        await session.commit()

    done = await client.post(f"/api/checklists/{checklist.id}/finalize", headers=admin_headers)
    assert done.status_code == 200
    assert done.json()["checklist"]["finalized_at"] is not None


async def test_partial_finalize_finalized_checklist(client, db, workspace, template, producer, admin_headers):
    finalized = await make_checklist(db, workspace, template.template.id, producer, status="FINALIZED")

    response = await client.post(f"/api/checklists/{finalized.id}/partial-finalize", json={}, headers=admin_headers)

    assert response.status_code == 400


async def test_scope_answers_are_read_from_parent(client, db, workspace, template, producer, checklist, admin_headers):
    child = await make_checklist(db, workspace, template.template.id, producer, parent_id=checklist.id)

    saved = await client.put(
        f"/api/checklists/{checklist.id}/scope-answers",
        json={"answers": [{"scopeFieldId": "irrigacao", "value": True}, {"scopeFieldId": "area", "value": 12.5}]},
        headers=admin_headers,
    )
    assert saved.status_code == 200
    assert {a["scope_field_id"]: a["value"] for a in saved.json()} == {"irrigacao": "True", "area": "12.5"}

    inherited = await client.get(f"/api/checklists/{child.id}/scope-answers", headers=admin_headers)
    assert {a["scope_field_id"] for a in inherited.json()} == {"irrigacao", "area"}

    forbidden = await client.put(
        f"/api/checklists/{child.id}/scope-answers",
        json={"answers": [{"scopeFieldId": "area", "value": 1}]},
        headers=admin_headers,
    )
    assert forbidden.status_code == 403


async def test_level_achievement(client, db, workspace, producer, admin_headers):
    structure = await make_template(db, workspace, LEVEL_TEMPLATE)
    items = _items(structure)
    levels = {lv.name: lv for lv in structure.levels}
    checklist = await make_checklist(db, workspace, structure.template.id, producer,
                                     target_level_id=levels["Prata"].id)
    await _add_responses(db, checklist, [(items["Outorga"], "APPROVED")])
    url = f"/api/checklists/{checklist.id}/level-achievement"

    response = await client.get(url, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["achievedLevel"]["name"] == "Bronze"
    assert data["targetLevel"]["id"] == levels["Prata"].id
    assert [lp["achieved"] for lp in data["levelProgress"]] == [True, False]

    await client.put(
        f"/api/checklists/{checklist.id}/scope-answers",
        json={"answers": [{"scopeFieldId": structure.scope_fields[0].id, "value": "NO"}]},
        headers=admin_headers,
    )
    without_reuse = (await client.get(url, headers=admin_headers)).json()
    assert without_reuse["achievedLevel"]["name"] == "Prata"


async def test_level_achievement_requires_level_template(client, checklist, admin_headers):
    response = await client.get(f"/api/checklists/{checklist.id}/level-achievement", headers=admin_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Not a level-based checklist"}


async def test_send_whatsapp(client, session_factory, monkeypatch, checklist, admin_headers):
    sender = AsyncMock(return_value={"key": {"id": "abc"}})
    monkeypatch.setattr(checklists_api, "send_whatsapp_message", sender)

    response = await client.post(f"/api/checklists/{checklist.id}/send-whatsapp", json={"language": "en"}, headers=admin_headers)

    assert response.status_code == 200
    phone, message = sender.await_args.args
    assert phone == "(11) 98765-4321"
    assert message.startswith("Hello João da Silva!")
    assert checklist.public_token in message

    async with session_factory() as session:
        stored = await session.get(Checklist, checklist.id)
    assert stored.sent_via == "WHATSAPP"
    assert stored.sent_to == "(11) 98765-4321"


async def test_send_whatsapp_without_phone(client, db, workspace, template, admin_headers):
    checklist = await make_checklist(db, workspace, template.template.id)

    response = await client.post(f"/api/checklists/{checklist.id}/send-whatsapp", headers=admin_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Produtor não possui telefone cadastrado."}


async def test_send_whatsapp_gateway_failure(client, monkeypatch, checklist, admin_headers):
    monkeypatch.setattr(
        checklists_api,
        "send_whatsapp_message",
        AsyncMock(side_effect=checklists_api.WhatsAppError("Evolution API error: 502")),
    )

    response = await client.post(f"/api/checklists/{checklist.id}/send-whatsapp", headers=admin_headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Evolution API error: 502"}
