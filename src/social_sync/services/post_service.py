"""Posts and their base64 images.

An image that does not fit into the post document is split into
``posts/{id}/chunks/{index}`` documents written in the same batch as the
post itself.
"""
from __future__ import annotations

import logging
from typing import Callable

from social_sync.application.dto.post import CreatePostDTO
from social_sync.application.exceptions import ForbiddenError, NotFoundError, ValidationError
from social_sync.application.mappers import post as post_mapper
from social_sync.application.ports.clock import EPOCH
from social_sync.application.ports.store import DocumentStore, FieldFilter, Selector
from social_sync.config import settings
from social_sync.domain.entities.post import Post
from social_sync.domain.value_objects import paths
from social_sync.services import user_service
from social_sync.services.subscriptions import SubscriptionCoordinator, SubscriptionHandle

logger = logging.getLogger(__name__)


def split_chunks(data: str, size: int) -> list[str]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [data[i:i + size] for i in range(0, len(data), size)]


def feed_selector(*, limit: int | None = None) -> Selector:
    return Selector(collection=paths.POSTS, order_by="createdAt", descending=True, limit=limit)


def user_posts_selector(uid: str) -> Selector:
    return Selector(collection=paths.POSTS, filters=(FieldFilter("uid", "==", uid),))


def _newest_first(posts: list[Post]) -> list[Post]:
    return sorted(posts, key=lambda p: p.created_at or EPOCH, reverse=True)


async def create_post(
    store: DocumentStore,
    author_uid: str,
    form: CreatePostDTO,
    *,
    chunk_size: int | None = None,
) -> Post:
    if not form.image:
        raise ValidationError("A post needs an image")
    author = await user_service.fetch_user(store, author_uid)
    if author is None:
        raise NotFoundError("User not found")

    size = chunk_size or settings.POST_CHUNK_SIZE
    pieces = split_chunks(form.image, size) if len(form.image) > size else []
    post_id = store.new_id()

    batch = store.batch()
    batch.set(
        paths.post(post_id),
        post_mapper.new_post_fields(
            author, form, inline_image="" if pieces else form.image, chunk_count=len(pieces),
        ),
    )
    for index, piece in enumerate(pieces):
        batch.set(paths.chunk(post_id, index), {"index": index, "data": piece})
    await batch.commit()
    logger.info("Post %s created by %s (%d chunks)", post_id, author_uid, len(pieces))

    doc = await store.get(paths.post(post_id))
    if doc is None:
        raise NotFoundError("Post vanished after write")
    return post_mapper.document_to_entity(doc)


async def get_post(store: DocumentStore, post_id: str) -> Post:
    doc = await store.get(paths.post(post_id))
    if doc is None:
        raise NotFoundError("Post not found")
    return post_mapper.document_to_entity(doc)


async def load_post_image(store: DocumentStore, post: Post) -> str:
    """Return the full base64 image, reassembling chunks when needed."""
    if not post.is_chunked:
        return post.image
    docs = await store.query(Selector(collection=paths.chunks(post.id), order_by="index"))
    if len(docs) != post.chunk_count:
        raise NotFoundError("Post image is incomplete")
    return "".join(str(doc.get("data", "")) for doc in docs)


async def delete_post(store: DocumentStore, uid: str, post_id: str) -> None:
    post = await get_post(store, post_id)
    if post.uid != uid:
        raise ForbiddenError("Only the author can delete a post")

    batch = store.batch()
    for index in range(post.chunk_count):
        batch.delete(paths.chunk(post_id, index))
    batch.delete(paths.post(post_id))
    await batch.commit()
    logger.info("Post %s deleted by %s", post_id, uid)


async def list_feed(store: DocumentStore, *, limit: int | None = None) -> list[Post]:
    docs = await store.query(feed_selector(limit=limit))
    return [post_mapper.document_to_entity(doc) for doc in docs]


def watch_feed(
    coordinator: SubscriptionCoordinator,
    on_change: Callable[[list[Post]], None],
) -> SubscriptionHandle:
    return coordinator.subscribe(
        feed_selector(),
        lambda docs: on_change([post_mapper.document_to_entity(doc) for doc in docs]),
        key=("posts", "feed"),
    )


def watch_user_posts(
    coordinator: SubscriptionCoordinator,
    uid: str,
    on_change: Callable[[list[Post]], None],
) -> SubscriptionHandle:
    # Equality filter only (no composite index); ordered here.
    return coordinator.subscribe(
        user_posts_selector(uid),
        lambda docs: on_change(
            _newest_first([post_mapper.document_to_entity(doc) for doc in docs])
        ),
        key=("posts", "user", uid),
    )
