from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.challenge import OtpChallengeStore
from ..auth.cookies import CookieJar
from ..auth.otp import OtpFlow
from ..core.config import AppSettings
from ..core.errors import status_for
from ..crud.milestones import is_admin
from ..db.session import get_db
from ..deps.auth import get_app_settings, get_identity_provider, require_user
from ..schemas.auth import AuthResult, OtpSendRequest, OtpSessionOut, OtpVerifyRequest, UserOut
from ..services.identity import IdentityProvider, ProviderUser

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _otp_flow(request: Request, settings: AppSettings, provider: IdentityProvider) -> tuple[OtpFlow, CookieJar]:
    jar = CookieJar.from_request(request)
    store = OtpChallengeStore(jar, settings)
    return OtpFlow(provider, store, jar, locale=settings.MESSAGE_LOCALE), jar


def _respond(result: AuthResult, jar: CookieJar) -> JSONResponse:
    response = JSONResponse(result.model_dump(mode="json"), status_code=status_for(result.code))
    return jar.commit(response)


@router.post("/otp", response_model=AuthResult, summary="Email a one-time passcode")
async def send_otp(
    payload: OtpSendRequest,
    request: Request,
    settings: AppSettings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    flow, jar = _otp_flow(request, settings, provider)
    return _respond(await flow.send(payload.email), jar)


@router.post("/otp/resend", response_model=AuthResult, summary="Send the passcode again")
async def resend_otp(
    payload: OtpSendRequest,
    request: Request,
    settings: AppSettings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    flow, jar = _otp_flow(request, settings, provider)
    return _respond(await flow.resend(payload.email), jar)


@router.post("/otp/verify", response_model=AuthResult, summary="Verify the passcode for the pending email")
async def verify_otp(
    payload: OtpVerifyRequest,
    request: Request,
    settings: AppSettings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    flow, jar = _otp_flow(request, settings, provider)
    return _respond(await flow.verify(payload.token), jar)


@router.get("/otp/session", response_model=OtpSessionOut, summary="Pending OTP challenge, if any")
async def otp_session(
    request: Request,
    settings: AppSettings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    flow, _ = _otp_flow(request, settings, provider)
    email = flow.pending_email()
    return OtpSessionOut(pending=email is not None, email=email)


@router.get("/user", response_model=UserOut, summary="Signed-in user")
def read_user(user: ProviderUser = Depends(require_user), db: Session = Depends(get_db)):
    return UserOut(id=user.id, email=user.email, is_admin=is_admin(db, user.id))
