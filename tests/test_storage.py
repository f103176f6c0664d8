"""Chaves e operações no storage"""
from unittest.mock import MagicMock

import pytest

from app.core import storage
from app.core.config import settings


@pytest.fixture
def s3_client(monkeypatch):
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://s3.test/signed"
    monkeypatch.setattr(storage, "get_s3_client", lambda: client)
    return client


def test_build_s3_key():
    key = storage.build_s3_key("ws-1", "ck-1", "it-1", "Nota fiscal (1).pdf", timestamp_ms=1700000000000)

    assert key == "checklist/ws-1/_root/ck-1/it-1/default/1700000000000_Nota_fiscal__1_.pdf"


def test_build_s3_key_with_subworkspace_and_field():
    key = storage.build_s3_key("ws-1", "ck-1", "it-1", "a.png", subworkspace_id="sub-1", field_id="f-1", timestamp_ms=1)

    assert key == "checklist/ws-1/sub-1/ck-1/it-1/f-1/1_a.png"


def test_is_s3_key():
    assert storage.is_s3_key("checklist/ws-1/_root/ck/it/default/1_a.pdf")
    assert not storage.is_s3_key("https://bucket.s3.amazonaws.com/checklist/a.pdf")
    assert not storage.is_s3_key("other/a.pdf")
    assert not storage.is_s3_key(None)


async def test_upload_file(s3_client):
    key = await storage.upload_file("checklist/k.pdf", b"%PDF", "application/pdf")

    assert key == "checklist/k.pdf"
    s3_client.put_object.assert_called_once_with(
        Bucket=settings.S3_BUCKET,
        Key="checklist/k.pdf",
        Body=b"%PDF",
        ContentType="application/pdf",
    )


async def test_upload_failure_raises_storage_error(s3_client):
    s3_client.put_object.side_effect = RuntimeError("boom")

    with pytest.raises(storage.StorageError):
        await storage.upload_file("checklist/k.pdf", b"%PDF", "application/pdf")


def test_presigned_urls_expiration(s3_client):
    storage.get_presigned_url("checklist/k.pdf")
    storage.get_presigned_upload_url("checklist/k.pdf", "image/png")

    read_call, upload_call = s3_client.generate_presigned_url.call_args_list
    assert read_call.args[0] == "get_object"
    assert read_call.kwargs["ExpiresIn"] == 3600
    assert upload_call.args[0] == "put_object"
    assert upload_call.kwargs["ExpiresIn"] == 900
    assert upload_call.kwargs["Params"]["ContentType"] == "image/png"
