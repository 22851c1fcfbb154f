"""
Baby Diary Backend — Upload API Tests
=======================================

What we test:
    ✅ multipart upload returns descriptors and the files are served at /uploads
    ✅ empty, unsupported and undecodable uploads are rejected with 400
    ✅ delete by publicId or fileName, uploader only
    ✅ a post created from an uploaded URL gets its mediaType from the upload
"""

import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def users(register, auth_headers):
    alice = await register("alice@example.com", "Alice")
    bob = await register("bob@example.com", "Bob", invite_code=alice["family"]["inviteCode"])
    return {"alice": auth_headers(alice["token"]), "bob": auth_headers(bob["token"])}


async def _upload(client, headers, *files):
    response = await client.post("/api/upload/files", files=[("files", f) for f in files], headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_image_and_video(self, client, users, sample_image_bytes):
        data = await _upload(
            client,
            users["alice"],
            ("first-steps.jpg", sample_image_bytes, "image/jpeg"),
            ("crawl.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4"),
        )

        assert data["count"] == 2
        image, video = data["files"]
        assert image["originalName"] == "first-steps.jpg"
        assert image["resourceType"] == "image"
        assert image["url"] == f"/uploads/{image['publicId']}"
        assert image["thumbnailUrl"].startswith("/uploads/thumbnails/thumb_")
        assert video["resourceType"] == "video"
        assert video["thumbnailUrl"] is None

        served = await client.get(image["url"])
        assert served.status_code == 200
        assert served.content[:2] == b"\xff\xd8"

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client, sample_image_bytes):
        response = await client.post(
            "/api/upload/files", files=[("files", ("a.jpg", sample_image_bytes, "image/jpeg"))]
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_no_files(self, client, users):
        response = await client.post("/api/upload/files", headers=users["alice"])
        assert response.status_code == 400
        assert response.json()["message"] == "No files were uploaded"

    @pytest.mark.asyncio
    async def test_too_many_files(self, client, users, sample_png_bytes):
        files = [("files", (f"{i}.png", sample_png_bytes, "image/png")) for i in range(6)]
        response = await client.post("/api/upload/files", files=files, headers=users["alice"])
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unsupported_type(self, client, users):
        response = await client.post(
            "/api/upload/files",
            files=[("files", ("notes.pdf", b"%PDF-1.4", "application/pdf"))],
            headers=users["alice"],
        )
        assert response.status_code == 400
        assert "not supported" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_undecodable_image(self, client, users):
        response = await client.post(
            "/api/upload/files",
            files=[("files", ("fake.jpg", b"this is text", "image/jpeg"))],
            headers=users["alice"],
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_truncated_image(self, client, users, sample_image_bytes):
        truncated = sample_image_bytes[: len(sample_image_bytes) // 2]
        response = await client.post(
            "/api/upload/files",
            files=[("files", ("half.jpg", truncated, "image/jpeg"))],
            headers=users["alice"],
        )
        assert response.status_code == 400
        assert "not a valid image" in response.json()["message"]


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_by_public_id(self, client, users, sample_image_bytes):
        image = (await _upload(client, users["alice"], ("a.jpg", sample_image_bytes, "image/jpeg")))["files"][0]

        response = await client.request(
            "DELETE", "/api/upload/files", json={"publicId": image["publicId"]}, headers=users["alice"]
        )

        assert response.status_code == 200
        assert (await client.get(image["url"])).status_code == 404
        assert (await client.get(image["thumbnailUrl"])).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_by_file_name(self, client, users):
        video = (await _upload(client, users["alice"], ("c.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4")))["files"][0]

        response = await client.request(
            "DELETE", "/api/upload/files", json={"fileName": video["fileName"]}, headers=users["alice"]
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_only_uploader_may_delete(self, client, users, sample_image_bytes):
        image = (await _upload(client, users["alice"], ("a.jpg", sample_image_bytes, "image/jpeg")))["files"][0]

        response = await client.request(
            "DELETE", "/api/upload/files", json={"publicId": image["publicId"]}, headers=users["bob"]
        )

        assert response.status_code == 403
        assert (await client.get(image["url"])).status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_file(self, client, users):
        response = await client.request(
            "DELETE", "/api/upload/files", json={"publicId": "images/nope.jpg"}, headers=users["alice"]
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_path_like_file_name_rejected(self, client, users):
        response = await client.request(
            "DELETE", "/api/upload/files", json={"fileName": "../secrets.jpg"}, headers=users["alice"]
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_identifier_required(self, client, users):
        response = await client.request("DELETE", "/api/upload/files", json={}, headers=users["alice"])
        assert response.status_code == 400


class TestMediaTypeFromUpload:

    @pytest.mark.asyncio
    async def test_post_media_type_comes_from_upload_record(self, client, users, sample_image_bytes):
        uploaded = await _upload(
            client,
            users["alice"],
            ("a.jpg", sample_image_bytes, "image/jpeg"),
            ("b.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4"),
        )
        image_url, video_url = (f["url"] for f in uploaded["files"])

        photo_post = await client.post(
            "/api/posts", json={"content": "photo", "mediaUrls": [image_url, video_url]}, headers=users["alice"]
        )
        video_post = await client.post(
            "/api/posts", json={"content": "video", "mediaUrls": [video_url]}, headers=users["alice"]
        )

        assert photo_post.json()["data"]["mediaType"] == "IMAGE"
        assert video_post.json()["data"]["mediaType"] == "VIDEO"
