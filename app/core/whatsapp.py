"""
Checklist Server - WhatsApp (Evolution API)
Envio do link do checklist para o produtor
"""
import logging
import re
from typing import Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "pt-BR"

MESSAGE_TEMPLATES = {
    "pt-BR": "Olá {name}! 👋\n\nSiga o link abaixo para preencher o checklist *{template_name}*:\n\n{link}\n\nObrigado!",
    "en": "Hello {name}! 👋\n\nFollow the link below to fill out the checklist *{template_name}*:\n\n{link}\n\nThank you!",
    "es": "Hola {name}! 👋\n\nSigue el enlace a continuación para completar el checklist *{template_name}*:\n\n{link}\n\n¡Gracias!",
}


class WhatsAppError(Exception):
    """Falha de configuração ou de envio pelo gateway"""


def normalize_phone(phone: str) -> str:
    """Apenas dígitos; números de 10/11 dígitos sem DDI recebem 55 (Brasil)"""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) in (10, 11) and not digits.startswith("55"):
        digits = f"55{digits}"
    return digits


def build_checklist_message(name: Optional[str], template_name: str, link: str, language: str = DEFAULT_LANGUAGE) -> str:
    template = MESSAGE_TEMPLATES.get(language) or MESSAGE_TEMPLATES[DEFAULT_LANGUAGE]
    return template.format(name=name or "Produtor", template_name=template_name, link=link)


async def send_whatsapp_message(phone: str, text: str) -> dict:
    """
    Envia mensagem de texto pela Evolution API.

    Raises:
        WhatsAppError: configuração ausente ou resposta de erro do gateway
    """
    if not settings.EVOLUTION_API_URL or not settings.EVOLUTION_API_KEY or not settings.EVOLUTION_INSTANCE:
        raise WhatsAppError("Evolution API configuration missing (URL, Key, or Instance)")

    endpoint = f"{settings.EVOLUTION_API_URL.rstrip('/')}/message/sendText/{settings.EVOLUTION_INSTANCE}"
    payload = {
        "number": normalize_phone(phone),
        "options": {
            "delay": 1200,
            "presence": "composing",
            "linkPreview": True,
        },
        "textMessage": {
            "text": text,
        },
    }

    try:
        async with httpx.AsyncClient(timeout=settings.EVOLUTION_TIMEOUT) as client:
            response = await client.post(
                endpoint,
                json=payload,
                headers={"apikey": settings.EVOLUTION_API_KEY},
            )
    except httpx.RequestError as e:
        logger.error(f"Erro de conexão com Evolution API: {e}")
        raise WhatsAppError(f"Failed to send WhatsApp message: {e}") from e

    if response.status_code >= 400:
        logger.error(f"Evolution API Error {response.status_code}: {response.text[:500]}")
        raise WhatsAppError(f"Failed to send WhatsApp message: {response.reason_phrase}")

    return response.json() if response.content else {}
