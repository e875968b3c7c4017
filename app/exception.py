from typing import Optional

from fastapi import HTTPException, status


class FriendTimeException(HTTPException):
    status_code = 500
    detail = ""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.detail)


class UserAlreadyExistsException(FriendTimeException):
    status_code = status.HTTP_409_CONFLICT
    detail = "User already exists"


class UserNotFoundException(FriendTimeException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "User not found"


class CannotFriendYourselfException(FriendTimeException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "You cannot add yourself as a friend"


class AlreadyFriendsException(FriendTimeException):
    status_code = status.HTTP_409_CONFLICT
    detail = "You are already friends"


class FriendRequestPendingException(FriendTimeException):
    status_code = status.HTTP_409_CONFLICT
    detail = "A friend request is already pending"


class FriendRequestNotFoundException(FriendTimeException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Friend request not found"


class NotRequestRecipientException(FriendTimeException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Only the recipient can answer a friend request"


class NotFriendsException(FriendTimeException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Users are not friends"


class PositionValidationException(FriendTimeException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "Invalid position fix"


class TransientStorageException(FriendTimeException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Storage temporarily unavailable, retry later"


class SessionInvariantViolation(Exception):
    """More than one active time session exists for a single pair."""

    def __init__(self, pair, sessions):
        self.pair = pair
        self.sessions = list(sessions)
        super().__init__(f"{len(self.sessions)} active sessions for pair {pair}")
