from __future__ import annotations

import pytest

from social_sync.application.dto.post import CreatePostDTO
from social_sync.application.exceptions import ForbiddenError, NotFoundError, ValidationError
from social_sync.domain.value_objects import paths
from social_sync.services import post_service
from tests.conftest import seed_user


@pytest.fixture
def author(store):
    seed_user(store, "alice", pfpData="UEZQ")
    return "alice"


@pytest.mark.asyncio
async def test_create_post_inline(store, author):
    form = CreatePostDTO(image="QUJD", caption="Harbour", address="Pier 3", lat=53.5, lng=9.9)

    post = await post_service.create_post(store, author, form)

    assert post.uid == "alice"
    assert post.username == "alice"
    assert post.profile_image == "UEZQ"
    assert post.image == "QUJD"
    assert (post.lat, post.lng) == (53.5, 9.9)
    assert not post.is_chunked
    assert post.created_at is not None


@pytest.mark.asyncio
async def test_coordinates_need_both_values(store, author):
    post = await post_service.create_post(store, author, CreatePostDTO(image="QUJD", lat=1.0))

    assert post.lat is None and post.lng is None
    assert "lat" not in store.data(paths.post(post.id))


@pytest.mark.asyncio
async def test_large_image_is_chunked(store, author):
    image = "ABCDEFGHIJ"

    post = await post_service.create_post(store, author, CreatePostDTO(image=image), chunk_size=4)

    assert post.chunk_count == 3
    assert post.image == ""
    assert store.data(paths.chunk(post.id, 2)) == {"index": 2, "data": "IJ"}
    assert await post_service.load_post_image(store, post) == image


@pytest.mark.asyncio
async def test_missing_chunk_is_reported(store, author):
    post = await post_service.create_post(store, author, CreatePostDTO(image="ABCDEFGHIJ"), chunk_size=4)
    await store.delete(paths.chunk(post.id, 1))

    with pytest.raises(NotFoundError):
        await post_service.load_post_image(store, post)


@pytest.mark.asyncio
async def test_create_post_validation(store, author):
    with pytest.raises(ValidationError):
        await post_service.create_post(store, author, CreatePostDTO(image=""))
    with pytest.raises(NotFoundError):
        await post_service.create_post(store, "ghost", CreatePostDTO(image="QUJD"))


@pytest.mark.asyncio
async def test_only_author_can_delete(store, author):
    seed_user(store, "bob")
    post = await post_service.create_post(store, author, CreatePostDTO(image="ABCDEFGHIJ"), chunk_size=4)

    with pytest.raises(ForbiddenError):
        await post_service.delete_post(store, "bob", post.id)

    await post_service.delete_post(store, author, post.id)
    assert not [p for p in store.docs if p.startswith(paths.post(post.id))]


def test_split_chunks():
    assert post_service.split_chunks("abcdefg", 3) == ["abc", "def", "g"]
    with pytest.raises(ValueError):
        post_service.split_chunks("abc", 0)


@pytest.mark.asyncio
async def test_feed_is_newest_first(store, author, coordinator):
    for caption in ("first", "second", "third"):
        await post_service.create_post(store, author, CreatePostDTO(image="QUJD", caption=caption))

    feed = await post_service.list_feed(store)
    assert [p.caption for p in feed] == ["third", "second", "first"]
    assert [p.caption for p in await post_service.list_feed(store, limit=1)] == ["third"]

    seen = []
    post_service.watch_user_posts(coordinator, author, lambda posts: seen.append([p.caption for p in posts]))
    assert seen == [["third", "second", "first"]]

    feed_seen = []
    handle = post_service.watch_feed(coordinator, lambda posts: feed_seen.append(len(posts)))
    await post_service.create_post(store, author, CreatePostDTO(image="QUJD", caption="fourth"))
    assert feed_seen == [3, 4]
    coordinator.unsubscribe(handle)
