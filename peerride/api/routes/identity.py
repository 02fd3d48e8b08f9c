"""
Identity hooks
==============

POST /api/v1/identity/before-create  -- signup gate on the email domain
                                        (requires the X-Hook-Secret header)
POST /api/v1/recaptcha/verify        -- human challenge verification
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from peerride.api.auth import require_hook_secret
from peerride.api.dependencies import get_db, get_domain_cache, get_recaptcha
from peerride.api.middleware import limiter
from peerride.api.schemas import (
    RecaptchaVerifyRequest,
    RecaptchaVerifyResponse,
    SignupCheckRequest,
    SignupCheckResponse,
)
from peerride.config import settings
from peerride.infrastructure.recaptcha import RecaptchaVerifier
from peerride.services.domains import AllowedDomainCache, check_signup

router = APIRouter(tags=["identity"])


@router.post(
    "/identity/before-create",
    response_model=SignupCheckResponse,
    summary="Pre-create hook restricting signup to allowed email domains",
    dependencies=[Depends(require_hook_secret)],
)
@limiter.limit(settings.rate_limit)
async def before_user_created(
    request: Request,
    body: SignupCheckRequest,
    db: AsyncSession = Depends(get_db),
    cache: AllowedDomainCache = Depends(get_domain_cache),
):
    await check_signup(db, cache, body)
    return SignupCheckResponse()


@router.post(
    "/recaptcha/verify",
    response_model=RecaptchaVerifyResponse,
    summary="Verify a reCAPTCHA token",
)
@limiter.limit(settings.rate_limit)
async def verify_recaptcha(
    request: Request,
    body: RecaptchaVerifyRequest,
    verifier: RecaptchaVerifier = Depends(get_recaptcha),
):
    await verifier.verify(body.token, body.action)
    return RecaptchaVerifyResponse()
