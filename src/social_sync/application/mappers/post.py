from __future__ import annotations

from typing import Any

from social_sync.application.dto.post import CreatePostDTO
from social_sync.application.mappers import _fields as f
from social_sync.application.ports.store import SERVER_TIMESTAMP, Document
from social_sync.domain.entities.post import Post
from social_sync.domain.entities.user import User


def document_to_entity(doc: Document) -> Post:
    return Post(
        id=doc.id,
        uid=f.text(doc.data, "uid"),
        username=f.text(doc.data, "username"),
        profile_image=f.optional_text(doc.data, "pfpData"),
        image=f.text(doc.data, "imageData"),
        caption=f.text(doc.data, "caption"),
        address=f.text(doc.data, "address"),
        lat=f.number(doc.data, "lat"),
        lng=f.number(doc.data, "lng"),
        created_at=f.timestamp(doc.data, "createdAt"),
        chunk_count=f.count(doc.data, "chunkCount"),
    )


def new_post_fields(
    author: User, form: CreatePostDTO, *, inline_image: str, chunk_count: int,
) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "uid": author.uid,
        "username": author.username,
        "pfpData": author.profile_image or "",
        "imageData": inline_image,
        "caption": form.caption or "",
        "address": form.address or "",
        "createdAt": SERVER_TIMESTAMP,
    }
    if form.lat is not None and form.lng is not None:
        fields["lat"] = form.lat
        fields["lng"] = form.lng
    if chunk_count:
        fields["chunkCount"] = chunk_count
    return fields
