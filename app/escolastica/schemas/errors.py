from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | None = None
    trace_id: str | None = None


class ApiValidationErrorItem(BaseModel):
    field: str | None = None
    message: str
    type: str
    loc: list[str | int] | None = None
    input: object | None = None


class ApiValidationErrorDetails(BaseModel):
    errors: list[ApiValidationErrorItem]


class ApiValidationErrorResponse(ApiErrorResponse):
    details: ApiValidationErrorDetails | dict | None = None


ERROR_RESPONSES = {
    400: {"model": ApiValidationErrorResponse, "description": "Validation or business rule failure"},
    401: {"model": ApiErrorResponse, "description": "Missing or invalid credentials"},
    403: {"model": ApiErrorResponse, "description": "Permission denied"},
    404: {"model": ApiErrorResponse, "description": "Transfer not found"},
    409: {"model": ApiErrorResponse, "description": "Conflict"},
}
