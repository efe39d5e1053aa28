from __future__ import annotations

from fastapi import APIRouter, Query, Response
from fastapi.concurrency import run_in_threadpool

from social_sync.api.deps import CurrentPrincipal, StoreDep
from social_sync.api.v1.schemas.post import CreatePostRequest, PostImageResponse, PostResponse
from social_sync.application.dto.post import CreatePostDTO
from social_sync.config import settings
from social_sync.infrastructure import imaging
from social_sync.services import post_service

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])


@router.get("", response_model=list[PostResponse])
async def list_feed(
    _principal: CurrentPrincipal,
    store: StoreDep,
    limit: int = Query(50, ge=1, le=200),
) -> list[PostResponse]:
    posts = await post_service.list_feed(store, limit=limit)
    return [PostResponse.model_validate(p, from_attributes=True) for p in posts]


@router.post("", response_model=PostResponse, status_code=201)
async def create_post(
    body: CreatePostRequest,
    principal: CurrentPrincipal,
    store: StoreDep,
) -> PostResponse:
    image = await run_in_threadpool(
        imaging.prepare_upload,
        body.image,
        max_pixel=settings.POST_IMAGE_MAX_PIXEL,
        limit_bytes=settings.IMAGE_LIMIT_BYTES,
    )
    form = CreatePostDTO(
        image=image,
        caption=body.caption,
        address=body.address,
        lat=body.lat,
        lng=body.lng,
    )
    post = await post_service.create_post(store, principal.uid, form)
    return PostResponse.model_validate(post, from_attributes=True)


@router.delete("/{post_id}", status_code=204)
async def delete_post(post_id: str, principal: CurrentPrincipal, store: StoreDep) -> Response:
    await post_service.delete_post(store, principal.uid, post_id)
    return Response(status_code=204)


@router.get("/{post_id}/image", response_model=PostImageResponse)
async def get_post_image(
    post_id: str,
    _principal: CurrentPrincipal,
    store: StoreDep,
) -> PostImageResponse:
    post = await post_service.get_post(store, post_id)
    image = await post_service.load_post_image(store, post)
    return PostImageResponse(id=post.id, image=image)
