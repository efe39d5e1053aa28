from __future__ import annotations

from social_sync.domain.value_objects.enums import AuthErrorCode


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class ConflictError(AppError):
    pass


class ValidationError(AppError):
    pass


class UsernameTakenError(ConflictError):
    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"Username '{username}' is already taken")


class FriendCodeCollisionError(ConflictError):
    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Could not allocate a free friend code after {attempts} attempts")


_AUTH_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIAL: "Email or password is incorrect.",
    AuthErrorCode.TOO_MANY_REQUESTS: "Too many attempts. Please try again later.",
    AuthErrorCode.USER_DISABLED: "This account has been disabled.",
    AuthErrorCode.NETWORK_UNREACHABLE: "No connection. Check your network and try again.",
    AuthErrorCode.EMAIL_IN_USE: "An account with this email already exists.",
    AuthErrorCode.WEAK_PASSWORD: "Password is too weak (at least 6 characters).",
    AuthErrorCode.UNKNOWN: "Sign-in failed. Please try again.",
}


class AuthError(AppError):
    """Authentication failure carrying a user-facing message."""

    def __init__(self, code: AuthErrorCode, detail: str = "") -> None:
        self.code = code
        super().__init__(detail or _AUTH_MESSAGES[code])

    @property
    def user_message(self) -> str:
        return _AUTH_MESSAGES[self.code]
