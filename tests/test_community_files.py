"""Tests for the community file hub."""

import io
import os

import pytest
from fastapi import HTTPException, UploadFile

from app.community import files
from app.community.files import format_file_size, sanitize_filename
from app.core.config import get_config
from helpers import community_member, make_admin


class TestHelpers:
    def test_format_file_size(self):
        assert format_file_size(0) == "0 Bytes"
        assert format_file_size(500) == "500 Bytes"
        assert format_file_size(1536) == "1.5 KB"
        assert format_file_size(1024 * 1024) == "1 MB"
        assert format_file_size(int(2.25 * 1024 ** 3)) == "2.25 GB"

    def test_sanitize_filename(self):
        assert sanitize_filename("../../etc/passwd") == "passwd"
        assert sanitize_filename("my notes (v2).pdf") == "my_notes_v2_.pdf"
        assert sanitize_filename("") == "file"


async def _upload(client, admin, name="guide.pdf", data=b"%PDF-1.4 guide", **fields):
    form = {"title": "Starter guide", "category": "guides", "tags": "mvp, launch"}
    form.update(fields)
    return await client.post(
        "/community/files",
        data=form,
        files={"file": (name, data, "application/pdf")},
        headers=admin["headers"],
    )


class TestFiles:
    async def test_upload_download_delete(self, client, db):
        admin = await community_member(client, email="admin@example.com", name="Admin")
        await make_admin(db, admin["user_id"], community=True)
        member = await community_member(client, email="m@example.com")

        uploaded = await _upload(client, admin)
        assert uploaded.status_code == 201
        record = uploaded.json()
        assert record["file_size"] == "14 Bytes"
        assert record["tags"] == ["mvp", "launch"]
        stored = os.path.join(get_config().FILES_STORAGE_DIR, record["storage_path"])
        assert os.path.isfile(stored)
        assert record["storage_path"].endswith("_guide.pdf")

        listed = (await client.get("/community/files", headers=member["headers"])).json()
        assert listed[0]["author"]["full_name"] == "Admin"
        assert listed[0]["user_downloaded"] is False

        first = (await client.post(f"/community/files/{record['file_id']}/download", headers=member["headers"])).json()
        assert first == {"success": True, "file_url": record["file_url"], "new_count": 1}
        second = (await client.post(f"/community/files/{record['file_id']}/download", headers=member["headers"])).json()
        assert second["new_count"] == 2
        assert await db.community_file_downloads.count_documents({"file_id": record["file_id"]}) == 1

        listed = (await client.get("/community/files", headers=member["headers"])).json()
        assert listed[0]["user_downloaded"] is True

        content = await client.get(record["file_url"], headers=member["headers"])
        assert content.status_code == 200
        assert content.content == b"%PDF-1.4 guide"

        deleted = await client.delete(f"/community/files/{record['file_id']}", headers=admin["headers"])
        assert deleted.json() == {"success": True}
        assert not os.path.exists(stored)
        assert await db.community_file_downloads.count_documents({}) == 0

    async def test_upload_requires_admin(self, client):
        member = await community_member(client)
        response = await _upload(client, member)
        assert response.status_code == 403

    async def test_too_large(self, client, db, monkeypatch):
        admin = await community_member(client, email="admin@example.com")
        await make_admin(db, admin["user_id"], community=True)
        monkeypatch.setattr(get_config(), "MAX_UPLOAD_BYTES", 10)
        response = await _upload(client, admin, data=b"x" * 11)
        assert response.status_code == 413

    async def test_oversized_stream_stops_and_leaves_no_file(self, db, monkeypatch):
        monkeypatch.setattr(get_config(), "MAX_UPLOAD_BYTES", 10)
        monkeypatch.setattr(files, "UPLOAD_CHUNK_BYTES", 4)
        upload = UploadFile(io.BytesIO(b"x" * 25), filename="big.bin")

        with pytest.raises(HTTPException) as exc:
            await files.upload_file(db, {"user_id": "USR_ADMIN"}, upload, {"title": "Big"})
        assert exc.value.status_code == 413
        assert os.listdir(get_config().FILES_STORAGE_DIR) == []
        assert await db.community_files.count_documents({}) == 0

    async def test_chunked_upload_written_whole(self, db, monkeypatch):
        monkeypatch.setattr(files, "UPLOAD_CHUNK_BYTES", 4)
        upload = UploadFile(io.BytesIO(b"0123456789"), filename="notes.txt")

        record = await files.upload_file(db, {"user_id": "USR_ADMIN"}, upload, {"title": "Notes"})
        assert record["file_size"] == "10 Bytes"
        with open(files.storage_path_for(record["storage_path"]), "rb") as fh:
            assert fh.read() == b"0123456789"

    async def test_missing_file(self, client):
        member = await community_member(client)
        response = await client.post("/community/files/FILE_NOPE/download", headers=member["headers"])
        assert response.status_code == 404
