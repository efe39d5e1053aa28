from __future__ import annotations

from fastapi import APIRouter, Response

from social_sync.api.deps import CurrentPrincipal, StoreDep
from social_sync.api.v1.schemas.friend import AddFriendRequest, AddFriendResponse, FriendResponse
from social_sync.services import friend_service, user_service

router = APIRouter(prefix="/api/v1/friends", tags=["friends"])


@router.get("", response_model=list[FriendResponse])
async def list_friends(principal: CurrentPrincipal, store: StoreDep) -> list[FriendResponse]:
    ids = await friend_service.list_friend_ids(store, principal.uid)
    users = await user_service.fetch_users_by_uids(store, ids)
    return [FriendResponse.model_validate(u, from_attributes=True) for u in users]


@router.post("", response_model=AddFriendResponse, status_code=201)
async def add_friend(
    body: AddFriendRequest,
    principal: CurrentPrincipal,
    store: StoreDep,
) -> AddFriendResponse:
    if body.friend_code:
        uid = await friend_service.add_friend_by_code(store, principal.uid, body.friend_code)
    elif body.username:
        uid = await friend_service.add_friend_from_scanned_value(
            store, principal.uid, body.username, is_uid=False,
        )
    else:
        uid = await friend_service.add_friend_from_scanned_value(
            store, principal.uid, body.uid or body.scanned or "",
        )
    return AddFriendResponse(uid=uid)


@router.delete("/{friend_uid}", status_code=204)
async def remove_friend(
    friend_uid: str,
    principal: CurrentPrincipal,
    store: StoreDep,
) -> Response:
    await friend_service.remove_friend(store, principal.uid, friend_uid)
    return Response(status_code=204)
