"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
JSON field names follow the camelCase used across the platform; Python
attributes stay snake_case through aliases.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Base model accepting both alias and field names."""

    model_config = ConfigDict(populate_by_name=True)


class UploadCodesRequest(CamelModel):
    """Request model for uploading caller-chosen registration codes."""

    registration_codes: list[str | dict[str, Any]] = Field(
        ...,
        alias="registrationCodes",
        min_length=1,
        description="Codes, or holder records carrying a registerCode field",
    )
    is_global: bool = Field(
        False,
        alias="isGlobal",
        description="Create multi-use codes (only if the organization allows it)",
    )


class CodesResponse(BaseModel):
    """Response model for code upload, generation and query."""

    message: str
    docs: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []


class MessageResponse(BaseModel):
    """Response model carrying a message and optional payload."""

    message: str
    payload: Any = None


class OrganizationRequest(CamelModel):
    """Request body naming the organization a code belongs to."""

    organization: str = Field(..., min_length=1)


class ValidateRegistrationCodeRequest(OrganizationRequest):
    """Request model for validating a registration code."""

    reg_info: bool = Field(
        False, alias="regInfo", description="Return the holder's registration info"
    )


class ValidateVerificationCodeResponse(BaseModel):
    """Response model for a validated verification code."""

    message: str
    registration_code: str = Field(..., serialization_alias="registrationCode")


class SubmitRegistrationRequest(OrganizationRequest):
    """Request model for the final registration submission."""

    registration_code: str = Field(..., alias="registrationCode", min_length=1)


class PreRegisterRequest(OrganizationRequest):
    """Request model for pre-registering a list of holders."""

    users: list[dict[str, Any]]
    file_name: str | None = Field(None, alias="fileName")


class PreRegisterResponse(BaseModel):
    """Response model for a processed pre-registration batch."""

    message: str
    batch_id: str = Field(..., serialization_alias="batchID")
    success_count: int = Field(..., serialization_alias="successCount")
    failure_count: int = Field(..., serialization_alias="failureCount")
    docs: list[dict[str, Any]]
    errors: list[dict[str, Any]]
    batch_failure_messages: list[str] = Field(..., serialization_alias="batchFailureMessages")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
