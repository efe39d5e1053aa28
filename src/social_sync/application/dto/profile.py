from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProfileView:
    """Profile fields as shown to the signed-in user (possibly from cache)."""

    username: str | None
    profile_image: str | None
    from_cache: bool = False
