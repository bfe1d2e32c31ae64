from pydantic import BaseModel, Field
from typing import Literal

from api.s3.schemas.common import CamelModel


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8)
    role: Literal["admin", "guest"] = "guest"


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class UserResponse(BaseModel):
    id: str
    username: str
    role: str


class UserEnvelope(BaseModel):
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
