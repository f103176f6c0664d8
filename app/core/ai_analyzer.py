"""
Checklist Server - AI pre-screen
Pré-análise de uma resposta pelo Gemini (REST via httpx).
O resultado é apenas uma sugestão: nunca altera o status de revisão.
"""
import json
import logging
import re
from typing import Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

VERDICT_STATUSES = {"APPROVED", "REJECTED"}
FALLBACK_STATUS = "PENDING_VERIFICATION"
DEFAULT_CONFIDENCE = 0.9

LANGUAGE_INSTRUCTIONS = {
    "pt-BR": "Responda em Português do Brasil.",
    "en": "Respond in English.",
    "es": "Responde en Español.",
}

PROMPT_TEMPLATE = """Você é um auditor de conformidade agrícola.
Avalie se a resposta do produtor atende ao item do checklist.

Item: {item_name}
Descrição: {item_description}
Resposta do produtor: {answer}
Observação do produtor: {observation}

Responda apenas com um JSON no formato:
{{"status": "APPROVED" | "REJECTED", "reason": "justificativa curta", "confidence": 0.0 a 1.0}}"""

STRUCTURED_ANSWER_HINT = (
    "CONTEXTO TÉCNICO: a resposta está em formato JSON (coordenadas de mapa, lista de "
    "arquivos ou ids). Não trate o JSON como texto comum nem como URL de documento. "
    "Se o item pede talhões ou mapa, uma lista de coordenadas não vazia é uma resposta válida."
)


class AIAnalysisError(Exception):
    """Falha na chamada ou na interpretação da resposta do modelo"""


def build_prompt(
    item_name: str,
    answer: Optional[str],
    observation: Optional[str] = None,
    item_description: Optional[str] = None,
    language: str = "pt-BR",
) -> str:
    answer = answer or ""
    prompt = PROMPT_TEMPLATE.format(
        item_name=item_name,
        item_description=item_description or "",
        answer=answer,
        observation=observation or "Nenhuma",
    )
    prompt = f"{LANGUAGE_INSTRUCTIONS.get(language, LANGUAGE_INSTRUCTIONS['pt-BR'])}\n\n{prompt}"

    stripped = answer.strip()
    if stripped.startswith("[") or stripped.startswith("{"):
        prompt = f"{STRUCTURED_ANSWER_HINT}\n\n{prompt}"

    if re.match(r"^(https?:|/).*\.(jpeg|jpg|png|webp)$", stripped, re.IGNORECASE):
        prompt += f"\n\n[Arquivo anexado: {stripped}]"

    return prompt


def parse_analysis(text: Optional[str]) -> dict:
    """
    Extrai o veredito JSON do texto do modelo.
    Status fora de APPROVED/REJECTED vira PENDING_VERIFICATION.
    """
    match = re.search(r"\{[\s\S]*\}", text or "")
    if not match:
        raise AIAnalysisError("Could not parse AI response")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AIAnalysisError(f"Invalid JSON in AI response: {e}") from e

    status = data.get("status")
    if status not in VERDICT_STATUSES:
        status = FALLBACK_STATUS

    confidence = data.get("confidence")
    try:
        confidence = float(confidence) if confidence is not None else DEFAULT_CONFIDENCE
    except (TypeError, ValueError):
        confidence = DEFAULT_CONFIDENCE

    return {
        "status": status,
        "reason": data.get("reasoning") or data.get("reason"),
        "confidence": confidence,
    }


def unavailable_analysis() -> dict:
    """Resultado quando não há GEMINI_API_KEY configurada"""
    return {
        "status": FALLBACK_STATUS,
        "reason": "Análise automática indisponível.",
        "confidence": 0.0,
    }


async def analyze_answer(
    item_name: str,
    answer: Optional[str],
    observation: Optional[str] = None,
    item_description: Optional[str] = None,
    language: str = "pt-BR",
) -> dict:
    """Chama o Gemini e retorna {status, reason, confidence}"""
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY não configurada - análise por IA indisponível")
        return unavailable_analysis()

    prompt = build_prompt(item_name, answer, observation, item_description, language)
    url = f"{settings.GEMINI_API_URL.rstrip('/')}/models/{settings.GEMINI_MODEL}:generateContent"
    body = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "temperature": settings.AI_TEMPERATURE,
        },
    }

    try:
        async with httpx.AsyncClient(timeout=settings.AI_TIMEOUT) as client:
            response = await client.post(
                url,
                json=body,
                headers={"x-goog-api-key": settings.GEMINI_API_KEY},
            )
    except httpx.TimeoutException as e:
        raise AIAnalysisError(f"Request timed out: {e}") from e
    except httpx.RequestError as e:
        raise AIAnalysisError(f"Request failed: {e}") from e

    if response.status_code >= 400:
        logger.error(f"Gemini API Error {response.status_code}: {response.text[:500]}")
        raise AIAnalysisError(f"AI provider returned {response.status_code}")

    data = response.json()
    text = ""
    for candidate in data.get("candidates", [])[:1]:
        for part in candidate.get("content", {}).get("parts", []):
            text += part.get("text", "")

    return parse_analysis(text)
