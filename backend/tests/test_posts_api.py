"""
Baby Diary Backend — Post & Like API Tests
============================================

What we test:
    ✅ read/write asymmetry: members read and like, only authors edit/delete
    ✅ cross-family access is 403, missing posts are 404
    ✅ the feed is family-scoped, newest first, filterable and paginated
    ✅ mediaType comes from the request or the upload record, never the URL text
    ✅ the full register → invite → post → like → comment scenario
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from babydiary.models.family import FamilyMember
from babydiary.models.post import Post
from babydiary.services.post_service import post_service


@pytest_asyncio.fixture
async def family(register, auth_headers):
    """Alice (admin) and Bob (member) share a family; Carol has her own."""
    alice = await register("alice@example.com", "Alice")
    bob = await register("bob@example.com", "Bob", invite_code=alice["family"]["inviteCode"])
    carol = await register("carol@example.com", "Carol")
    return {
        "alice": auth_headers(alice["token"]),
        "bob": auth_headers(bob["token"]),
        "carol": auth_headers(carol["token"]),
        "alice_data": alice,
        "carol_data": carol,
    }


async def _create_post(client, headers, **body):
    body.setdefault("content", "First steps today!")
    response = await client.post("/api/posts", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreatePost:

    @pytest.mark.asyncio
    async def test_create_returns_detail(self, client, family):
        post = await _create_post(client, family["alice"], content="  첫 걸음!  ", tags=["milestone", "walk"])

        assert post["content"] == "첫 걸음!"
        assert post["tags"] == ["milestone", "walk"]
        assert post["mediaUrls"] == []
        assert post["mediaType"] is None
        assert post["author"]["name"] == "Alice"
        assert post["family"]["id"] == family["alice_data"]["family"]["id"]
        assert post["likeCount"] == 0
        assert post["commentCount"] == 0
        assert post["isLiked"] is False
        assert post["comments"] == []

    @pytest.mark.asyncio
    async def test_explicit_media_type_is_kept(self, client, family):
        post = await _create_post(
            client, family["alice"], mediaUrls=["https://cdn.example.com/clip"], mediaType="VIDEO"
        )
        assert post["mediaType"] == "VIDEO"

    @pytest.mark.asyncio
    async def test_media_type_not_guessed_from_url_text(self, client, family):
        # "video" in the URL must not make this a VIDEO post
        post = await _create_post(client, family["alice"], mediaUrls=["https://cdn.example.com/video/photo.jpg"])
        assert post["mediaType"] is None

    @pytest.mark.asyncio
    async def test_media_type_dropped_without_media(self, client, family):
        post = await _create_post(client, family["alice"], mediaType="IMAGE")
        assert post["mediaType"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"content": ""},
        {"content": "   "},
        {"content": "x" * 2001},
        {"content": "ok", "tags": ["t"] * 11},
        {"content": "ok", "tags": ["x" * 21]},
        {"content": "ok", "mediaUrls": ["https://example.com/a"] * 11},
        {"content": "ok", "mediaType": "AUDIO"},
    ])
    async def test_invalid_bodies_rejected(self, client, family, body):
        response = await client.post("/api/posts", json=body, headers=family["alice"])
        assert response.status_code == 400
        assert response.json()["errors"]

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        response = await client.post("/api/posts", json={"content": "hi"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_user_without_family_is_forbidden(self, client, register, auth_headers, session_factory):
        lonely = await register("lonely@example.com", "Lonely")
        async with session_factory() as session:
            await session.execute(
                delete(FamilyMember).where(FamilyMember.user_id == uuid.UUID(lonely["user"]["id"]))
            )
            await session.commit()

        response = await client.get("/api/posts", headers=auth_headers(lonely["token"]))
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"


class TestPostAccess:

    @pytest.mark.asyncio
    async def test_member_can_read(self, client, family):
        post = await _create_post(client, family["alice"])
        response = await client.get(f"/api/posts/{post['id']}", headers=family["bob"])
        assert response.status_code == 200
        assert response.json()["data"]["id"] == post["id"]

    @pytest.mark.asyncio
    async def test_member_cannot_update_or_delete(self, client, family):
        post = await _create_post(client, family["alice"])

        update = await client.put(f"/api/posts/{post['id']}", json={"content": "hacked"}, headers=family["bob"])
        remove = await client.delete(f"/api/posts/{post['id']}", headers=family["bob"])

        assert update.status_code == 403
        assert remove.status_code == 403
        unchanged = await client.get(f"/api/posts/{post['id']}", headers=family["alice"])
        assert unchanged.json()["data"]["content"] == post["content"]

    @pytest.mark.asyncio
    async def test_other_family_is_forbidden_everywhere(self, client, family):
        post = await _create_post(client, family["alice"])
        url = f"/api/posts/{post['id']}"

        assert (await client.get(url, headers=family["carol"])).status_code == 403
        assert (await client.put(url, json={"content": "x"}, headers=family["carol"])).status_code == 403
        assert (await client.delete(url, headers=family["carol"])).status_code == 403
        assert (await client.post(f"{url}/like", headers=family["carol"])).status_code == 403

    @pytest.mark.asyncio
    async def test_missing_post_is_not_found(self, client, family):
        response = await client.get(f"/api/posts/{uuid.uuid4()}", headers=family["alice"])
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_malformed_id_is_bad_request(self, client, family):
        response = await client.get("/api/posts/not-a-uuid", headers=family["alice"])
        assert response.status_code == 400


class TestUpdateDelete:

    @pytest.mark.asyncio
    async def test_author_partial_update(self, client, family):
        post = await _create_post(client, family["alice"], tags=["a", "b"])

        response = await client.put(
            f"/api/posts/{post['id']}",
            json={"content": "Edited", "tags": ["c"]},
            headers=family["alice"],
        )

        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated["content"] == "Edited"
        assert updated["tags"] == ["c"]

    @pytest.mark.asyncio
    async def test_null_content_rejected(self, client, family):
        post = await _create_post(client, family["alice"], content="keep me")

        response = await client.put(f"/api/posts/{post['id']}", json={"content": None}, headers=family["alice"])

        assert response.status_code == 400
        assert any(e.startswith("content") for e in response.json()["errors"])
        unchanged = await client.get(f"/api/posts/{post['id']}", headers=family["alice"])
        assert unchanged.json()["data"]["content"] == "keep me"

    @pytest.mark.asyncio
    async def test_clearing_media_clears_media_type(self, client, family):
        post = await _create_post(
            client, family["alice"], mediaUrls=["https://cdn.example.com/a.mp4"], mediaType="VIDEO"
        )

        response = await client.put(f"/api/posts/{post['id']}", json={"mediaUrls": []}, headers=family["alice"])

        data = response.json()["data"]
        assert data["mediaUrls"] == []
        assert data["mediaType"] is None

    @pytest.mark.asyncio
    async def test_delete_removes_post_and_comments(self, client, family):
        post = await _create_post(client, family["alice"])
        await client.post(f"/api/posts/{post['id']}/comments", json={"content": "cute"}, headers=family["bob"])
        await client.post(f"/api/posts/{post['id']}/like", headers=family["bob"])

        response = await client.delete(f"/api/posts/{post['id']}", headers=family["alice"])

        assert response.status_code == 200
        assert (await client.get(f"/api/posts/{post['id']}", headers=family["alice"])).status_code == 404
        comments = await client.get(f"/api/posts/{post['id']}/comments", headers=family["bob"])
        assert comments.status_code == 404


class TestLikes:

    @pytest.mark.asyncio
    async def test_member_toggles_like_on_someone_elses_post(self, client, family):
        post = await _create_post(client, family["alice"])
        url = f"/api/posts/{post['id']}/like"

        first = await client.post(url, headers=family["bob"])
        assert first.status_code == 200
        assert first.json()["data"] == {"liked": True, "likeCount": 1}

        detail = await client.get(f"/api/posts/{post['id']}", headers=family["bob"])
        assert detail.json()["data"]["isLiked"] is True
        assert detail.json()["data"]["likes"][0]["user"]["name"] == "Bob"

        second = await client.post(url, headers=family["bob"])
        assert second.json()["data"] == {"liked": False, "likeCount": 0}

    @pytest.mark.asyncio
    async def test_likes_are_per_user(self, client, family):
        post = await _create_post(client, family["alice"])
        url = f"/api/posts/{post['id']}/like"

        await client.post(url, headers=family["alice"])
        response = await client.post(url, headers=family["bob"])

        assert response.json()["data"] == {"liked": True, "likeCount": 2}

    @pytest.mark.asyncio
    async def test_like_missing_post(self, client, family):
        response = await client.post(f"/api/posts/{uuid.uuid4()}/like", headers=family["bob"])
        assert response.status_code == 404


class TestListPosts:

    @pytest.mark.asyncio
    async def test_feed_is_family_scoped_and_newest_first(self, client, family):
        await _create_post(client, family["alice"], content="older")
        await _create_post(client, family["bob"], content="newer")
        await _create_post(client, family["carol"], content="other family")

        response = await client.get("/api/posts", headers=family["bob"])

        data = response.json()["data"]
        assert [p["content"] for p in data["posts"]] == ["newer", "older"]
        assert data["pagination"]["totalCount"] == 2

    @pytest.mark.asyncio
    async def test_search_matches_content_case_insensitively_or_exact_tag(self, client, family):
        await _create_post(client, family["alice"], content="Park WALK with grandma")
        await _create_post(client, family["alice"], content="bath time", tags=["walk"])
        await _create_post(client, family["alice"], content="nap")

        response = await client.get("/api/posts", params={"search": "walk"}, headers=family["alice"])

        contents = {p["content"] for p in response.json()["data"]["posts"]}
        assert contents == {"Park WALK with grandma", "bath time"}

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, client, family):
        await _create_post(client, family["alice"], content="100% happy")
        await _create_post(client, family["alice"], content="sleepy")

        response = await client.get("/api/posts", params={"search": "%"}, headers=family["alice"])

        assert [p["content"] for p in response.json()["data"]["posts"]] == ["100% happy"]

    @pytest.mark.asyncio
    async def test_author_filter(self, client, family):
        await _create_post(client, family["alice"], content="from alice")
        await _create_post(client, family["bob"], content="from bob")

        response = await client.get("/api/posts", params={"author": "BO"}, headers=family["alice"])

        assert [p["content"] for p in response.json()["data"]["posts"]] == ["from bob"]

    @pytest.mark.asyncio
    async def test_tags_filter_matches_any(self, client, family):
        await _create_post(client, family["alice"], content="a", tags=["first"])
        await _create_post(client, family["alice"], content="b", tags=["bath"])
        await _create_post(client, family["alice"], content="c", tags=["nap"])

        response = await client.get("/api/posts", params={"tags": "first, nap"}, headers=family["alice"])

        assert {p["content"] for p in response.json()["data"]["posts"]} == {"a", "c"}

    @pytest.mark.asyncio
    async def test_list_reports_counts_and_is_liked(self, client, family):
        post = await _create_post(client, family["alice"])
        await client.post(f"/api/posts/{post['id']}/like", headers=family["bob"])
        await client.post(f"/api/posts/{post['id']}/comments", json={"content": "so cute"}, headers=family["bob"])

        as_bob = (await client.get("/api/posts", headers=family["bob"])).json()["data"]["posts"][0]
        as_alice = (await client.get("/api/posts", headers=family["alice"])).json()["data"]["posts"][0]

        assert as_bob["likeCount"] == 1
        assert as_bob["commentCount"] == 1
        assert as_bob["isLiked"] is True
        assert as_alice["isLiked"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{"limit": 51}, {"limit": 0}, {"page": 0}])
    async def test_out_of_range_paging_rejected(self, client, family, params):
        response = await client.get("/api/posts", params=params, headers=family["alice"])
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_pagination_over_120_posts(self, client, family, session_factory):
        alice = family["alice_data"]
        author_id = uuid.UUID(alice["user"]["id"])
        family_id = uuid.UUID(alice["family"]["id"])
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        async with session_factory() as session:
            session.add_all(
                Post(
                    content=f"post {i}",
                    media_urls=[],
                    author_id=author_id,
                    family_id=family_id,
                    created_at=base + timedelta(minutes=i),
                    updated_at=base + timedelta(minutes=i),
                )
                for i in range(120)
            )
            await session.commit()

        pages = []
        for page in (1, 2, 3, 4):
            response = await client.get("/api/posts", params={"page": page, "limit": 50}, headers=family["alice"])
            assert response.status_code == 200
            pages.append(response.json()["data"])

        assert [len(p["posts"]) for p in pages] == [50, 50, 20, 0]
        first, _, third, _ = pages
        assert first["pagination"] == {
            "current": 1,
            "total": 3,
            "count": 50,
            "totalCount": 120,
            "hasNext": True,
            "hasPrev": False,
        }
        assert third["pagination"]["hasNext"] is False
        assert third["pagination"]["hasPrev"] is True
        assert first["posts"][0]["content"] == "post 119"
        assert third["posts"][-1]["content"] == "post 0"

        seen = [p["id"] for page in pages for p in page["posts"]]
        assert len(seen) == len(set(seen)) == 120

    @pytest.mark.asyncio
    async def test_default_limit_is_ten(self, client, family):
        for i in range(12):
            await _create_post(client, family["alice"], content=f"p{i}")

        data = (await client.get("/api/posts", headers=family["alice"])).json()["data"]

        assert len(data["posts"]) == 10
        assert data["pagination"]["total"] == 2


class TestFamilyScenario:

    @pytest.mark.asyncio
    async def test_invite_post_like_comment_flow(self, client, register, auth_headers):
        a = await register("parent@example.com", "Parent")
        b = await register("grandma@example.com", "Grandma", invite_code=a["family"]["inviteCode"])
        c = await register("stranger@example.com", "Stranger")
        ha, hb, hc = auth_headers(a["token"]), auth_headers(b["token"]), auth_headers(c["token"])

        post = await _create_post(client, ha, content="Baby's first smile", tags=["smile"])

        feed = (await client.get("/api/posts", headers=hb)).json()["data"]["posts"]
        assert [p["id"] for p in feed] == [post["id"]]

        like = await client.post(f"/api/posts/{post['id']}/like", headers=hb)
        assert like.json()["data"]["liked"] is True

        edit = await client.put(f"/api/posts/{post['id']}", json={"content": "mine now"}, headers=hb)
        assert edit.status_code == 403

        comment = await client.post(
            f"/api/posts/{post['id']}/comments", json={"content": "Beautiful!"}, headers=hb
        )
        assert comment.status_code == 201

        detail = (await client.get(f"/api/posts/{post['id']}", headers=ha)).json()["data"]
        assert detail["likeCount"] == 1
        assert [c["content"] for c in detail["comments"]] == ["Beautiful!"]
        assert detail["comments"][0]["author"]["name"] == "Grandma"

        assert (await client.get(f"/api/posts/{post['id']}", headers=hc)).status_code == 403
        assert (await client.get("/api/posts", headers=hc)).json()["data"]["posts"] == []


class TestToggleLikeRace:

    @pytest.mark.asyncio
    async def test_duplicate_insert_reports_liked(self, mock_db_session):
        lookup = MagicMock()
        lookup.scalar_one_or_none.return_value = None
        count = MagicMock()
        count.scalar.return_value = 1
        mock_db_session.execute = AsyncMock(side_effect=[lookup, count])
        mock_db_session.begin_nested = MagicMock(return_value=AsyncMock())
        mock_db_session.flush = AsyncMock(side_effect=IntegrityError("INSERT INTO likes", {}, Exception("duplicate")))

        result = await post_service.toggle_like(mock_db_session, uuid.uuid4(), uuid.uuid4())

        assert result.liked is True
        assert result.like_count == 1
        mock_db_session.begin_nested.assert_called_once()
        mock_db_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_like_keeps_rest_of_transaction(self, client, family, session_factory):
        post = await _create_post(client, family["alice"], content="before")
        await client.post(f"/api/posts/{post['id']}/like", headers=family["bob"])
        bob_id = uuid.UUID(
            (await client.get("/api/auth/me", headers=family["bob"])).json()["data"]["user"]["id"]
        )

        async with session_factory() as session:
            row = await session.get(Post, uuid.UUID(post["id"]))
            row.content = "after"
            await session.flush()

            # Hits uq_likes_post_user in the database
            await post_service.insert_like(session, row.id, bob_id)
            await session.commit()

        detail = (await client.get(f"/api/posts/{post['id']}", headers=family["alice"])).json()["data"]
        assert detail["content"] == "after"
        assert detail["likeCount"] == 1
