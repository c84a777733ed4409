"""
Error taxonomy for the room coordinator.

Every error carries a stable machine-readable ``code``. Handlers send it to the
originating connection only; errors are never broadcast.
"""
from __future__ import annotations


class KitchenError(Exception):
    """Base class of every game error."""

    code = "INTERNAL_ERROR"
    category = "internal"
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"code": self.code, "message": self.message, "category": self.category}


# ============ Categories ============

class ValidationError(KitchenError):
    category = "validation"


class StateError(KitchenError):
    category = "state"


class AuthorizationError(KitchenError):
    category = "authorization"


class NotFoundError(KitchenError):
    category = "not_found"


class ConflictError(KitchenError):
    category = "conflict"


class TransientError(KitchenError):
    category = "transient"


class InternalError(KitchenError):
    category = "internal"


# ============ Validation ============

class NameInvalid(ValidationError):
    code = "INVALID_PLAYER_NAME"
    message = "Player name must be 1-50 letters, numbers, spaces, hyphens or underscores"


class InvalidRoomCode(ValidationError):
    code = "INVALID_ROOM_CODE"
    message = "Room code must be exactly 4 letters"


class InvalidPayload(ValidationError):
    code = "INVALID_PAYLOAD"
    message = "Invalid payload"


class InvalidContent(ValidationError):
    code = "INVALID_IMAGE_DATA"
    message = "Image data is required"


class InvalidVoteValue(ValidationError):
    code = "INVALID_VOTE_VALUE"
    message = "Vote value is out of range"


class InvalidSettings(ValidationError):
    code = "INVALID_SETTINGS"
    message = "Invalid room settings"


# ============ State ============

class WrongPhase(StateError):
    code = "INVALID_GAME_STATE"

    def __init__(self, phase: str, expected: tuple[str, ...] = ()):
        self.phase = phase
        self.expected = expected
        wanted = "/".join(expected) if expected else "another phase"
        super().__init__(f"Action not allowed while room is {phase} (needs {wanted})")


class RoundTimeExpired(StateError):
    code = "COOKING_TIME_EXPIRED"
    message = "Cooking time has expired"


# ============ Authorization ============

class NotHost(AuthorizationError):
    code = "NOT_HOST"
    message = "Only the host can do that"


# ============ Not found ============

class RoomNotFound(NotFoundError):
    code = "ROOM_NOT_FOUND"

    def __init__(self, room_code: str):
        self.room_code = room_code
        super().__init__(f"Room {room_code} not found")


class PlayerNotFound(NotFoundError):
    code = "PLAYER_NOT_FOUND"
    message = "Player not found"


class PlayerNotInRoom(NotFoundError):
    code = "PLAYER_NOT_IN_ROOM"
    message = "Player is not in this room"


class TargetNotFound(NotFoundError):
    code = "TARGET_NOT_FOUND"
    message = "Vote target not found"


class TargetNotInRoom(NotFoundError):
    code = "TARGET_NOT_IN_ROOM"
    message = "Vote target belongs to another room"


# ============ Conflict ============

class NameTaken(ConflictError):
    code = "NAME_ALREADY_TAKEN"
    message = "Player name is already taken in this room"


class RoomFull(ConflictError):
    code = "ROOM_FULL"

    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(f"Room is full. Maximum {capacity} players allowed.")


class DuplicateConnection(ConflictError):
    code = "PLAYER_ALREADY_EXISTS"
    message = "Player already exists for this connection"


class AlreadySubmitted(ConflictError):
    code = "ALREADY_SUBMITTED"
    message = "You have already submitted for this round"


class AlreadyVoted(ConflictError):
    code = "ALREADY_VOTED"
    message = "You have already voted"


class SelfVote(ConflictError):
    code = "SELF_VOTE_NOT_ALLOWED"
    message = "Players cannot vote for their own submission"


class NotEnoughPlayers(ConflictError):
    code = "NOT_ENOUGH_PLAYERS"

    def __init__(self, needed: int, got: int):
        self.needed = needed
        self.got = got
        super().__init__(f"At least {needed} players required to start the game, got {got}")


# ============ Transient / internal ============

class RoomCodeGenerationFailed(TransientError):
    code = "ROOM_CODE_GENERATION_FAILED"
    message = "Failed to generate unique room code. Please try again."


class UploadFailed(InternalError):
    code = "UPLOAD_FAILED"
    message = "Image upload failed"


class StaleVersion(InternalError):
    """Conditional store update lost against a newer version."""

    def __init__(self, key: str, expected: int, actual: int | None):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(f"Stale write for {key}: expected version {expected}, found {actual}")

    def to_payload(self) -> dict:
        # Never leak store internals to clients.
        return InternalError().to_payload()
