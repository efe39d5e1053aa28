from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from social_sync.api.deps import StoreDep
from social_sync.domain.value_objects import paths

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(store: StoreDep) -> JSONResponse:
    errors: list[str] = []

    try:
        await store.get(paths.user("__readyz__"))
    except Exception as exc:  # noqa: BLE001
        errors.append(f"firestore: {exc}")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    return JSONResponse(content={"status": "ready"})
