"""
Pydantic schemas for email verification endpoints.

Request fields are optional on purpose: missing or malformed values are
reported by the service as VALIDATION_ERROR (400) rather than FastAPI's 422.
"""

from typing import Optional
from pydantic import BaseModel, Field


class SendVerificationRequest(BaseModel):
    """Request a verification code for an email"""
    email: Optional[str] = None


class VerifyCodeRequest(BaseModel):
    """Submit a verification code"""
    email: Optional[str] = None
    code: Optional[str] = None


class SendVerificationData(BaseModel):
    email: str
    expires_in: int = Field(..., alias="expiresIn", description="Seconds until the code expires")

    class Config:
        populate_by_name = True


class VerifyCodeData(BaseModel):
    verified: bool
    email: str


class VerificationStatusData(BaseModel):
    email: str
    verified: bool


class SendVerificationResponse(BaseModel):
    """Response after sending verification code"""
    success: bool = True
    data: SendVerificationData
    message: Optional[str] = None


class VerifyCodeResponse(BaseModel):
    """Response after a successful verification"""
    success: bool = True
    data: VerifyCodeData
    message: Optional[str] = None


class VerificationStatusResponse(BaseModel):
    success: bool = True
    data: VerificationStatusData
