"""Envio de mensagens pela Evolution API"""
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.core.config import settings
from app.core.whatsapp import (
    WhatsAppError,
    normalize_phone,
    build_checklist_message,
    send_whatsapp_message,
)


@pytest.fixture
def evolution_config(monkeypatch):
    monkeypatch.setattr(settings, "EVOLUTION_API_URL", "https://evolution.test/")
    monkeypatch.setattr(settings, "EVOLUTION_API_KEY", "evo-key")
    monkeypatch.setattr(settings, "EVOLUTION_INSTANCE", "checklists")


def _response(status_code: int, json=None) -> httpx.Response:
    return httpx.Response(status_code, json=json or {}, request=httpx.Request("POST", "https://evolution.test"))


def test_normalize_phone():
    assert normalize_phone("(11) 98765-4321") == "5511987654321"
    assert normalize_phone("1133334444") == "551133334444"
    assert normalize_phone("+55 11 98765-4321") == "5511987654321"


def test_message_templates():
    message = build_checklist_message("Maria", "Orgânicos", "https://app/c/abc", "es")
    assert message.startswith("Hola Maria!")
    assert "https://app/c/abc" in message

    fallback = build_checklist_message(None, "Orgânicos", "https://app/c/abc", "fr")
    assert fallback.startswith("Olá Produtor!")


async def test_missing_configuration(monkeypatch):
    monkeypatch.setattr(settings, "EVOLUTION_API_URL", None)

    with pytest.raises(WhatsAppError):
        await send_whatsapp_message("11987654321", "oi")


async def test_send_message(evolution_config):
    post = AsyncMock(return_value=_response(201, {"key": {"id": "msg-1"}}))

    with patch.object(httpx.AsyncClient, "post", post):
        result = await send_whatsapp_message("(11) 98765-4321", "Olá")

    assert result == {"key": {"id": "msg-1"}}
    assert post.call_args.args[0] == "https://evolution.test/message/sendText/checklists"
    assert post.call_args.kwargs["json"]["number"] == "5511987654321"
    assert post.call_args.kwargs["json"]["textMessage"] == {"text": "Olá"}
    assert post.call_args.kwargs["headers"] == {"apikey": "evo-key"}


async def test_gateway_error(evolution_config):
    post = AsyncMock(return_value=_response(500))

    with patch.object(httpx.AsyncClient, "post", post):
        with pytest.raises(WhatsAppError):
            await send_whatsapp_message("11987654321", "Olá")
