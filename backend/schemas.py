"""
Request/response schemas for the panel API.
"""

from typing import Any, List, Optional
from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Uniform response envelope"""
    success: bool
    message: str
    data: Optional[Any] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class SignupRequest(BaseModel):
    invite_code: str = Field(..., description="Unused invite code")
    username: str
    password: str

    class Config:
        json_schema_extra = {
            "example": {
                "invite_code": "h2Vq0c9aXb3E",
                "username": "alice",
                "password": "s3cret-pass"
            }
        }


class UserInfo(BaseModel):
    """Dashboard view of a user and their relay"""
    id: int
    host: str
    username: str
    status: int
    package_used: str
    package_limit: int
    package_left: str
    package_left_percent: str
    service_port: int
    service_pwd: str
    service_method: str
    service_type: str
    expired: str
    service_url: str


class PanelInfo(BaseModel):
    uInfo: UserInfo
    ss_methods: List[str]
    ssr_methods: List[str]
    servers: List[str]


class ServiceResult(BaseModel):
    """Relay created by a create-service request"""
    id: str
    port: int
    password: str
    method: str
    type: str
    package_limit: int
    host: str
