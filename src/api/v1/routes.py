"""
API v1 routes.

Defines REST endpoints for registration code administration and the MFA
holder onboarding flow. Every domain CodeResult maps onto an HTTP status
through CodeOutcome.status.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from src.api.dependencies import (
    get_onboarding_service,
    get_organization,
    get_registration_service,
    get_store,
    load_organization,
)
from src.api.models import (
    CodesResponse,
    ErrorResponse,
    MessageResponse,
    OrganizationRequest,
    PreRegisterRequest,
    PreRegisterResponse,
    SubmitRegistrationRequest,
    UploadCodesRequest,
    ValidateRegistrationCodeRequest,
    ValidateVerificationCodeResponse,
)
from src.domain.codes import generate_registration_codes
from src.domain.documents import RegistrationCodeDocument
from src.domain.expiration import registration_code_expiration
from src.domain.onboarding import OnboardingService
from src.domain.organization import OrganizationConfig
from src.domain.ports import CodeResult, CodeStatus, DocumentStore
from src.domain.registration_codes import QUERY_MAX_LIMIT, RegistrationCodeService

router = APIRouter(tags=["v1"])

_errors = {
    400: {"model": ErrorResponse, "description": "Invalid, used or expired code"},
    404: {"model": ErrorResponse, "description": "Organization or code not found"},
    422: {"description": "Validation error"},
}


def _raise_for(result: CodeResult, prefix: str = "") -> None:
    if result.status >= 400:
        raise HTTPException(status_code=result.status, detail=f"{prefix}{result.message}")


def _doc_payload(doc: RegistrationCodeDocument) -> dict[str, Any]:
    return {**doc.to_body(), "id": doc.key}


@router.post(
    "/register-codes/{entity}/generate/{howmany}",
    response_model=CodesResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_errors, 409: {"model": CodesResponse, "description": "Some codes not generated"}},
    summary="Generate registration codes",
    description="Generate random registration codes for an organization. "
    "Expiration defaults to the configured number of days.",
)
async def generate_codes(
    response: Response,
    howmany: int = Path(..., ge=1, le=QUERY_MAX_LIMIT),
    expires_at: str | None = Query(None, alias="expiresAt"),
    expires_in: str | None = Query(None, alias="expiresIn"),
    org: OrganizationConfig = Depends(get_organization),
    service: RegistrationCodeService = Depends(get_registration_service),
) -> CodesResponse:
    expiration = registration_code_expiration(service.policy.valid_days, expires_at, expires_in)
    _raise_for(expiration)

    codes = generate_registration_codes(howmany, service.policy.for_organization(org).code_length)
    result = service.upload(org, codes, expiration.data)
    response.status_code = result.status
    return CodesResponse(
        message=result.message.replace("uploaded", "generated"),
        docs=[_doc_payload(doc) for doc in result.docs],
        errors=result.errors,
    )


@router.post(
    "/register-codes/{entity}/upload",
    response_model=CodesResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_errors, 409: {"model": CodesResponse, "description": "Some codes not uploaded"}},
    summary="Upload registration codes",
    description="Store caller-chosen registration codes. Codes colliding with "
    "existing ones are reported per code with the reason for the collision.",
)
async def upload_codes(
    request_data: UploadCodesRequest,
    response: Response,
    expires_at: str | None = Query(None, alias="expiresAt"),
    expires_in: str | None = Query(None, alias="expiresIn"),
    org: OrganizationConfig = Depends(get_organization),
    service: RegistrationCodeService = Depends(get_registration_service),
) -> CodesResponse:
    expiration = registration_code_expiration(service.policy.valid_days, expires_at, expires_in)
    _raise_for(expiration)

    # Global codes only for organizations that opted in
    is_global = org.global_reg_code_allowed and request_data.is_global
    result = service.upload(org, request_data.registration_codes, expiration.data, is_global)
    response.status_code = result.status
    return CodesResponse(
        message=result.message,
        docs=[_doc_payload(doc) for doc in result.docs],
        errors=result.errors,
    )


@router.get(
    "/register-codes/{entity}/{howmany}",
    response_model=CodesResponse,
    responses=_errors,
    summary="Query registration codes",
)
async def query_codes(
    howmany: int,
    code_status: CodeStatus | None = Query(None, alias="status"),
    org: OrganizationConfig = Depends(get_organization),
    service: RegistrationCodeService = Depends(get_registration_service),
) -> CodesResponse:
    """Return up to 200 registration codes, optionally filtered by status."""
    result = service.query(org, howmany, code_status)
    _raise_for(result)
    return CodesResponse(message=result.message, docs=[_doc_payload(doc) for doc in result.data])


@router.delete(
    "/register-codes/{entity}/{code}",
    response_model=MessageResponse,
    responses=_errors,
    summary="Roll back a registration code",
    description="Delete an unused registration code and its verification code.",
)
async def rollback_code(
    code: str,
    org: OrganizationConfig = Depends(get_organization),
    service: RegistrationCodeService = Depends(get_registration_service),
) -> MessageResponse:
    result = service.rollback(org, code)
    _raise_for(result)
    return MessageResponse(message=result.message)


@router.post(
    "/onboarding/mfa/users",
    response_model=PreRegisterResponse,
    responses={**_errors, 500: {"model": ErrorResponse, "description": "Organization misconfigured"}},
    summary="Pre-register holders",
    description="Queue a list of holders, issue each a registration code and "
    "notify them. Processing stops once the batch error threshold is reached.",
)
async def pre_register_users(
    request_data: PreRegisterRequest,
    store: DocumentStore = Depends(get_store),
    service: OnboardingService = Depends(get_onboarding_service),
) -> PreRegisterResponse:
    org = load_organization(store, request_data.organization)
    result = service.pre_register(org, request_data.users, request_data.file_name)
    _raise_for(result, "Failed to pre-register users: ")

    outcome = result.data
    return PreRegisterResponse(
        message=result.message,
        batch_id=outcome.batch_id,
        success_count=outcome.result.success_count,
        failure_count=outcome.result.failure_count,
        docs=[_doc_payload(doc) for doc in outcome.result.docs],
        errors=outcome.failed_rows,
        batch_failure_messages=outcome.result.batch_failure_messages,
    )


@router.post(
    "/onboarding/mfa/registration-code/{code}",
    response_model=MessageResponse,
    responses=_errors,
    summary="Validate a registration code",
    description="Validate a holder's registration code. With MFA enabled a "
    "verification code is sent to the holder's phone or email.",
)
async def validate_registration_code(
    code: str,
    request_data: ValidateRegistrationCodeRequest,
    store: DocumentStore = Depends(get_store),
    service: OnboardingService = Depends(get_onboarding_service),
) -> MessageResponse:
    org = load_organization(store, request_data.organization)
    result = service.validate_registration_code(org, code)
    _raise_for(result)

    if request_data.reg_info:
        return MessageResponse(message=result.message, payload=result.data.reg_info)
    return MessageResponse(message=result.message)


@router.post(
    "/onboarding/mfa/verification-code/{code}",
    response_model=ValidateVerificationCodeResponse,
    responses=_errors,
    summary="Validate a verification code",
)
async def validate_verification_code(
    code: str,
    request_data: OrganizationRequest,
    store: DocumentStore = Depends(get_store),
    service: OnboardingService = Depends(get_onboarding_service),
) -> ValidateVerificationCodeResponse:
    org = load_organization(store, request_data.organization)
    result = service.validate_verification_code(org, code)
    _raise_for(result, "Verification code is invalid: ")
    return ValidateVerificationCodeResponse(message=result.message, registration_code=result.data)


@router.post(
    "/onboarding/mfa/submit-registration",
    response_model=MessageResponse,
    responses=_errors,
    summary="Submit a registration",
    description="Consume the registration code. Exactly one of several "
    "concurrent submissions for the same code succeeds.",
)
async def submit_registration(
    request_data: SubmitRegistrationRequest,
    store: DocumentStore = Depends(get_store),
    service: OnboardingService = Depends(get_onboarding_service),
) -> MessageResponse:
    org = load_organization(store, request_data.organization)
    result = service.submit_registration(org, request_data.registration_code)
    _raise_for(result, f"Failed to submit registration in organization {org.entity}: ")
    return MessageResponse(message=result.message, payload=result.data.reg_info())
