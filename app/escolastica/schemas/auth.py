from pydantic import BaseModel


class LoginRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "username": "coordinator.north",
                "password": "Secret123",
            }
        }
    }

    username: str
    password: str


class TokenResponse(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "access_token": "<jwt>",
                "token_type": "bearer",
                "trace_id": "trace-123",
            }
        }
    }

    access_token: str
    token_type: str = "bearer"
    trace_id: str


class ManagedBranch(BaseModel):
    id: str
    name: str
    code: str


class MeResponse(BaseModel):
    id: str
    username: str
    email: str | None = None
    full_name: str
    user_type: str
    is_active: bool
    managed_branches: list[ManagedBranch]
    trace_id: str
