"""
Two-Factor Authentication Routes

Code delivery and verification for sms/email methods and secret
provisioning for authenticator apps.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from salon.dependencies import get_two_factor_service
from salon.exceptions import ValidationError
from salon.middleware.rate_limit import limiter, two_factor_send_limit
from salon.schemas import GenerateSecretRequest, SendCodeRequest, VerifyCodeRequest
from salon.services.two_factor_service import TwoFactorService

router = APIRouter(tags=["Two-Factor Authentication"])


@router.post("/send-2fa-code")
@limiter.limit(two_factor_send_limit)
async def send_code(
    request: Request,
    payload: SendCodeRequest,
    service: TwoFactorService = Depends(get_two_factor_service),
):
    return await service.request_code(payload.user_id, payload.method_type)


@router.post("/verify-2fa-code")
async def verify_code(
    payload: VerifyCodeRequest,
    service: TwoFactorService = Depends(get_two_factor_service),
):
    """
    Verify a code.

    A wrong code is a normal outcome and answers 400 with
    {"success": false, "message": ...} rather than the error envelope.
    """
    result = await service.verify_code(payload.user_id, payload.method_type, payload.code, payload.secret_key)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": result.message},
        )
    return {"success": True, "message": result.message}


@router.post("/generate-2fa-secret")
async def generate_secret(
    payload: GenerateSecretRequest,
    service: TwoFactorService = Depends(get_two_factor_service),
):
    if payload.method_type != "authenticator":
        raise ValidationError("Secrets are only generated for authenticator methods", field="methodType")
    return await service.generate_secret(payload.user_id)


@router.get("/2fa/{user_id}/methods")
async def list_methods(user_id: str, service: TwoFactorService = Depends(get_two_factor_service)):
    return {"methods": await service.list_methods(user_id)}
