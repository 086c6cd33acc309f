from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    INVALID_CREDENTIALS = ErrorDefinition(
        "INVALID_CREDENTIALS",
        "Invalid credentials",
        status.HTTP_401_UNAUTHORIZED,
    )
    USER_INACTIVE = ErrorDefinition(
        "USER_INACTIVE",
        "User is inactive",
        status.HTTP_403_FORBIDDEN,
    )
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "You do not have permission to manage transfers for this branch",
        status.HTTP_403_FORBIDDEN,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_400_BAD_REQUEST,
    )
    TRANSFER_NOT_FOUND = ErrorDefinition(
        "TRANSFER_NOT_FOUND",
        "Transfer not found",
        status.HTTP_404_NOT_FOUND,
    )
    NO_ACTIVE_MEMBERSHIP = ErrorDefinition(
        "NO_ACTIVE_MEMBERSHIP",
        "The student is not active in any branch",
        status.HTTP_400_BAD_REQUEST,
    )
    DUPLICATE_TRANSFER = ErrorDefinition(
        "DUPLICATE_TRANSFER",
        "A pending transfer already exists for this student",
        status.HTTP_409_CONFLICT,
    )
    INVALID_TRANSITION = ErrorDefinition(
        "INVALID_TRANSITION",
        "Transfer is not pending",
        status.HTTP_400_BAD_REQUEST,
    )
    TRANSFER_EXPIRED = ErrorDefinition(
        "TRANSFER_EXPIRED",
        "The transfer has expired",
        status.HTTP_400_BAD_REQUEST,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)
