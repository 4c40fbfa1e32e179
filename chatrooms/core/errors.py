# chatrooms/core/errors.py
"""
Error taxonomy for room access.

Every failure of a RoomAccessService operation is raised as a subclass of
RoomAccessError. The API layer turns them into JSON responses using
``status_code`` and ``code``; nothing here knows about HTTP beyond the number.
"""


class RoomAccessError(Exception):
    code = "room_access_error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class Unauthenticated(RoomAccessError):
    code = "unauthenticated"
    status_code = 401


class NotFound(RoomAccessError):
    code = "not_found"
    status_code = 404


class WrongRoomKind(RoomAccessError):
    code = "wrong_room_kind"
    status_code = 409


class InvalidCredential(RoomAccessError):
    code = "invalid_credential"
    status_code = 403


class Forbidden(RoomAccessError):
    code = "forbidden"
    status_code = 403


class NotMember(RoomAccessError):
    code = "not_member"
    status_code = 403


class InvalidRequest(RoomAccessError):
    code = "invalid_request"
    status_code = 400


class StoreFailure(RoomAccessError):
    """Opaque passthrough of a Data Store error."""

    code = "store_failure"
    status_code = 502


class AuthenticationError(RoomAccessError):
    """Identity provider rejected a sign-in, sign-up or token."""

    code = "authentication_failed"
    status_code = 401
