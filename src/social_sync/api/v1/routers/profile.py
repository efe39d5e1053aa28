from __future__ import annotations

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from social_sync.api.deps import CurrentPrincipal, StoreDep
from social_sync.api.v1.schemas.profile import (
    CreateProfileRequest,
    FriendCodeResponse,
    ProfileResponse,
    UpdateProfileRequest,
)
from social_sync.application.exceptions import NotFoundError
from social_sync.config import settings
from social_sync.infrastructure import imaging
from social_sync.services import user_service

router = APIRouter(prefix="/api/v1/me", tags=["profile"])


async def _prepare_profile_image(data: str | None) -> str | None:
    if not data:
        return None
    return await run_in_threadpool(
        imaging.prepare_upload,
        data,
        max_pixel=settings.PROFILE_IMAGE_MAX_PIXEL,
        limit_bytes=settings.IMAGE_LIMIT_BYTES,
    )


@router.get("", response_model=ProfileResponse)
async def get_profile(principal: CurrentPrincipal, store: StoreDep) -> ProfileResponse:
    user = await user_service.fetch_user(store, principal.uid)
    if user is None:
        raise NotFoundError("Profile not found")
    return ProfileResponse.model_validate(user, from_attributes=True)


@router.post("", response_model=ProfileResponse, status_code=201)
async def create_profile(
    body: CreateProfileRequest,
    principal: CurrentPrincipal,
    store: StoreDep,
) -> ProfileResponse:
    image = await _prepare_profile_image(body.profile_image)
    user = await user_service.add_user(
        store, principal.uid, principal.email, body.username, image,
    )
    return ProfileResponse.model_validate(user, from_attributes=True)


@router.patch("", response_model=ProfileResponse)
async def update_profile(
    body: UpdateProfileRequest,
    principal: CurrentPrincipal,
    store: StoreDep,
) -> ProfileResponse:
    image = await _prepare_profile_image(body.profile_image)
    user = await user_service.update_profile(
        store, principal.uid, new_username=body.username, new_profile_image=image,
    )
    return ProfileResponse.model_validate(user, from_attributes=True)


@router.post("/friend-code", response_model=FriendCodeResponse)
async def get_friend_code(principal: CurrentPrincipal, store: StoreDep) -> FriendCodeResponse:
    code = await user_service.ensure_friend_code(store, principal.uid)
    return FriendCodeResponse(friend_code=code)
