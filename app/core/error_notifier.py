"""
Checklist Server - Error Notification System
Envia emails quando erros não tratados ocorrem na API
"""
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from html import escape
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)

# Cache para evitar spam de emails (mesmo erro em sequência)
_error_cache = {}
_CACHE_TTL_SECONDS = 300  # 5 minutos entre emails do mesmo erro

_SENSITIVE_KEYS = ("password", "token", "secret", "apikey")


def _get_error_key(error_type: str, error_msg: str) -> str:
    """Gera chave única para o erro"""
    return f"{error_type}:{error_msg[:100]}"


def _should_send_notification(error_key: str) -> bool:
    """Verifica se deve enviar notificação (evita spam)"""
    now = datetime.utcnow()

    if error_key in _error_cache:
        last_sent = _error_cache[error_key]
        if (now - last_sent).total_seconds() < _CACHE_TTL_SECONDS:
            return False

    _error_cache[error_key] = now
    return True


def sanitize_request_data(data: Optional[dict]) -> dict:
    """Mascara campos sensíveis antes de enviar por email"""
    return {
        k: '***' if any(s in k.lower() for s in _SENSITIVE_KEYS) else v
        for k, v in (data or {}).items()
    }


def _build_html(fields: list, error_details: Optional[str]) -> str:
    rows = "".join(
        f"<tr><td style='font-weight:bold;padding:6px'>{escape(label)}</td>"
        f"<td style='padding:6px;font-family:monospace'>{escape(str(value))}</td></tr>"
        for label, value in fields
        if value
    )
    details = ""
    if error_details:
        details = f"<pre style='background:#fef2f2;color:#991b1b;padding:10px'>{escape(error_details[:2000])}</pre>"

    return f"""
    <html>
    <body style="font-family: Arial, sans-serif">
        <h2 style="color:#dc2626">&#9888; Erro no Checklist Server</h2>
        <table>{rows}</table>
        {details}
        <p style="font-size:11px;color:#6b7280">Email enviado automaticamente pelo monitoramento.</p>
    </body>
    </html>
    """


def send_error_notification(
    error_type: str,
    error_message: str,
    error_details: Optional[str] = None,
    workspace_id: Optional[str] = None,
    user_email: Optional[str] = None,
    endpoint: Optional[str] = None,
    request_data: Optional[dict] = None
) -> bool:
    """
    Envia email de notificação de erro.

    Args:
        error_type: Tipo do erro (ex: "API_ERROR", "STORAGE_ERROR")
        error_message: Mensagem resumida do erro
        error_details: Stack trace ou detalhes técnicos
        workspace_id: Workspace afetado (se aplicável)
        user_email: Email do usuário que causou o erro (se aplicável)
        endpoint: Endpoint que gerou o erro
        request_data: Dados da requisição (serão sanitizados)

    Returns:
        True se o email foi enviado
    """
    if not settings.ERROR_NOTIFICATION_ENABLED:
        return False

    if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
        logger.warning("SMTP não configurado - notificação de erro não enviada")
        return False

    error_key = _get_error_key(error_type, error_message)
    if not _should_send_notification(error_key):
        logger.debug(f"Notificação de erro suprimida (spam protection): {error_key}")
        return False

    try:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = f"[CHECKLIST ERRO] {error_type}: {error_message[:50]}"
        msg['From'] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
        msg['To'] = settings.ERROR_NOTIFICATION_EMAIL

        fields = [
            ("Tipo", error_type),
            ("Mensagem", error_message),
            ("Data/Hora", datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")),
            ("Workspace", workspace_id),
            ("Usuário", user_email),
            ("Endpoint", endpoint),
            ("Requisição", str(sanitize_request_data(request_data))[:500] if request_data else None),
        ]
        msg.attach(MIMEText(_build_html(fields, error_details), 'html'))

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            if settings.SMTP_TLS:
                server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(msg)

        logger.info(f"Notificação de erro enviada: {error_type}")
        return True

    except Exception as e:
        logger.error(f"Falha ao enviar notificação de erro: {e}")
        return False
