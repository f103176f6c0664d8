"""
Checklist Server - Object Storage
Arquivos dos checklists no S3 (ou serviço compatível via S3_ENDPOINT)
"""
import asyncio
import logging
import re
import time
from functools import lru_cache
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig

from app.core.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "checklist/"

ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


class StorageError(Exception):
    """Falha ao falar com o storage"""


@lru_cache()
def get_s3_client():
    """Cliente boto3 (path-style quando há endpoint customizado)"""
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION,
        endpoint_url=settings.S3_ENDPOINT or None,
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        config=BotoConfig(
            signature_version="s3v4",
            s3={"addressing_style": "path" if settings.S3_ENDPOINT else "auto"},
        ),
    )


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]", "_", filename or "file")


def build_s3_key(
    workspace_id: str,
    checklist_id: str,
    item_id: str,
    filename: str,
    subworkspace_id: Optional[str] = None,
    field_id: Optional[str] = None,
    timestamp_ms: Optional[int] = None,
) -> str:
    """
    checklist/{workspaceId}/{subworkspaceId|_root}/{checklistId}/{itemId}/{fieldId|default}/{timestamp}_{filename}
    """
    timestamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return (
        f"{KEY_PREFIX}{workspace_id}/{subworkspace_id or '_root'}/{checklist_id}/"
        f"{item_id}/{field_id or 'default'}/{timestamp}_{sanitize_filename(filename)}"
    )


def is_s3_key(value: Optional[str]) -> bool:
    """Chave do storage (e não uma URL completa)"""
    return bool(value) and value.startswith(KEY_PREFIX) and not value.startswith("http")


def is_allowed_content_type(content_type: Optional[str]) -> bool:
    return content_type in ALLOWED_CONTENT_TYPES


async def upload_file(key: str, body: bytes, content_type: str) -> str:
    """Envia o arquivo e retorna a chave"""
    client = get_s3_client()
    try:
        await asyncio.to_thread(
            client.put_object,
            Bucket=settings.S3_BUCKET,
            Key=key,
            Body=body,
            ContentType=content_type,
        )
    except Exception as e:
        logger.error(f"Erro ao enviar arquivo {key}: {e}")
        raise StorageError(f"Upload failed: {e}") from e

    logger.info(f"Arquivo enviado: {key} ({len(body)} bytes)")
    return key


def get_presigned_url(key: str, expires_in: Optional[int] = None) -> str:
    """URL assinada de leitura (padrão 1 hora)"""
    try:
        return get_s3_client().generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.S3_BUCKET, "Key": key},
            ExpiresIn=expires_in or settings.S3_READ_URL_EXPIRES,
        )
    except Exception as e:
        raise StorageError(f"Failed to generate URL: {e}") from e


def get_presigned_upload_url(key: str, content_type: str, expires_in: Optional[int] = None) -> str:
    """URL assinada de escrita (padrão 15 minutos)"""
    try:
        return get_s3_client().generate_presigned_url(
            "put_object",
            Params={"Bucket": settings.S3_BUCKET, "Key": key, "ContentType": content_type},
            ExpiresIn=expires_in or settings.S3_UPLOAD_URL_EXPIRES,
        )
    except Exception as e:
        raise StorageError(f"Failed to generate upload URL: {e}") from e
