"""Upload de evidências e URLs assinadas"""
from unittest.mock import MagicMock

import pytest
from starlette.datastructures import UploadFile

from app.core import storage
from app.core.config import settings


@pytest.fixture
def s3_client(monkeypatch):
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://s3.test/signed"
    monkeypatch.setattr(storage, "get_s3_client", lambda: client)
    return client


def _form(checklist, **extra):
    data = {"workspaceId": checklist.workspace_id, "checklistId": checklist.id, "itemId": "item-1"}
    data.update(extra)
    return data


async def test_upload_evidence(client, s3_client, checklist):
    response = await client.post(
        "/api/upload",
        data=_form(checklist, fieldId="talhao-1"),
        files={"file": ("nota fiscal.pdf", b"%PDF-1.4 conteudo", "application/pdf")},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["key"].startswith(f"checklist/{checklist.workspace_id}/_root/{checklist.id}/item-1/talhao-1/")
    assert data["key"].endswith("_nota_fiscal.pdf")
    assert data["size"] == len(b"%PDF-1.4 conteudo")
    assert data["contentType"] == "application/pdf"

    kwargs = s3_client.put_object.call_args.kwargs
    assert kwargs["Key"] == data["key"]
    assert kwargs["ContentType"] == "application/pdf"


async def test_upload_rejects_unknown_checklist(client, s3_client, checklist, other_workspace):
    response = await client.post(
        "/api/upload",
        data=_form(checklist, workspaceId=other_workspace.id),
        files={"file": ("a.png", b"png", "image/png")},
    )

    assert response.status_code == 404
    s3_client.put_object.assert_not_called()


async def test_upload_rejects_content_type(client, s3_client, checklist):
    response = await client.post(
        "/api/upload",
        data=_form(checklist),
        files={"file": ("script.sh", b"echo", "text/x-shellscript")},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Unsupported file type: text/x-shellscript"}


async def test_upload_rejects_large_file(client, s3_client, monkeypatch, checklist):
    monkeypatch.setattr(settings, "UPLOAD_MAX_SIZE", 10)

    response = await client.post(
        "/api/upload",
        data=_form(checklist),
        files={"file": ("foto.jpg", b"x" * 11, "image/jpeg")},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "File too large. Maximum size is 10 MB."}
    s3_client.put_object.assert_not_called()


async def test_upload_reads_at_most_one_byte_past_limit(client, s3_client, monkeypatch, checklist):
    monkeypatch.setattr(settings, "UPLOAD_MAX_SIZE", 10)
    read_sizes = []
    original_init = UploadFile.__init__
    original_read = UploadFile.read

    def init_without_size(self, *args, **kwargs):
        original_init(self, *args, **kwargs)
        # Sem tamanho conhecido a checagem depende só da leitura limitada
        self.size = None

    async def tracking_read(self, size=-1):
        read_sizes.append(size)
        return await original_read(self, size)

    monkeypatch.setattr(UploadFile, "__init__", init_without_size)
    monkeypatch.setattr(UploadFile, "read", tracking_read)

    response = await client.post(
        "/api/upload",
        data=_form(checklist),
        files={"file": ("foto.jpg", b"x" * 50, "image/jpeg")},
    )

    assert response.status_code == 400
    assert read_sizes == [11]
    s3_client.put_object.assert_not_called()


async def test_upload_storage_failure(client, s3_client, checklist):
    s3_client.put_object.side_effect = RuntimeError("bucket indisponível")

    response = await client.post(
        "/api/upload",
        data=_form(checklist),
        files={"file": ("foto.jpg", b"jpeg", "image/jpeg")},
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Upload failed"}


async def test_presigned_url(client, s3_client):
    missing = await client.get("/api/upload/presigned-url")
    assert missing.status_code == 400

    invalid = await client.get("/api/upload/presigned-url", params={"key": "https://example.com/a.png"})
    assert invalid.status_code == 400

    response = await client.get("/api/upload/presigned-url", params={"key": "checklist/ws/_root/ck/it/default/1_a.png"})
    assert response.json() == {"url": "https://s3.test/signed"}


async def test_presigned_upload_url_builds_key_for_checklist(client, s3_client, checklist):
    response = await client.post(
        "/api/upload/presigned-upload-url",
        json={**_form(checklist, fieldId="talhao-1"), "filename": "foto da lavoura.png", "contentType": "image/png"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["url"] == "https://s3.test/signed"
    assert data["key"].startswith(f"checklist/{checklist.workspace_id}/_root/{checklist.id}/item-1/talhao-1/")
    assert data["key"].endswith("_foto_da_lavoura.png")
    params = s3_client.generate_presigned_url.call_args.kwargs["Params"]
    assert params["Key"] == data["key"]
    assert params["ContentType"] == "image/png"


async def test_presigned_upload_url_requires_checklist_of_workspace(client, s3_client, checklist, other_workspace):
    foreign = await client.post(
        "/api/upload/presigned-upload-url",
        json={**_form(checklist, workspaceId=other_workspace.id), "filename": "a.pdf", "contentType": "application/pdf"},
    )
    assert foreign.status_code == 404
    assert foreign.json() == {"error": "Checklist not found"}

    unknown = await client.post(
        "/api/upload/presigned-upload-url",
        json={
            "workspaceId": checklist.workspace_id,
            "checklistId": "checklist-inexistente",
            "itemId": "item-1",
            "filename": "a.pdf",
            "contentType": "application/pdf",
        },
    )
    assert unknown.status_code == 404

    s3_client.generate_presigned_url.assert_not_called()


async def test_presigned_upload_url_ignores_raw_key(client, s3_client):
    response = await client.post(
        "/api/upload/presigned-upload-url",
        json={"key": "checklist/ws/_root/ck/it/default/1_a.pdf", "contentType": "application/pdf"},
    )

    assert response.status_code == 422
    s3_client.generate_presigned_url.assert_not_called()


async def test_presigned_upload_url_rejects_content_type(client, s3_client, checklist):
    response = await client.post(
        "/api/upload/presigned-upload-url",
        json={**_form(checklist), "filename": "run.sh", "contentType": "text/x-shellscript"},
    )

    assert response.status_code == 400
    s3_client.generate_presigned_url.assert_not_called()
