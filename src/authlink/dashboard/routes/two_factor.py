"""Two-factor enrollment API.

Every route acts on the signed-in operator's own account: HTTP Basic
credentials must pass the primary check and name the account in the path.
Turning an active second factor off also needs a current code.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel

from authlink.auth.login import ENROLLMENT_MISMATCH_MESSAGE, outcome_message
from authlink.errors import AlreadyActive, CodeMismatch, NotPending
from authlink.models import LoginOutcome

router = APIRouter(prefix="/api/2fa", tags=["two-factor"])

security = HTTPBasic()


class ConfirmBody(BaseModel):
    code: str


class EnrollBody(BaseModel):
    label: str | None = None


class DisableBody(BaseModel):
    code: str | None = None


def _manager(request: Request):
    return request.app.state.services.two_factor


def operator_account(
    account_id: str,
    request: Request,
    credentials: HTTPBasicCredentials = Depends(security),
) -> str:
    """The path account, once the caller has proven they own it."""
    primary = request.app.state.services.primary
    valid = primary.verify_primary(credentials.username, credentials.password)
    if not valid or credentials.username != account_id:
        raise HTTPException(
            status_code=401,
            detail=outcome_message(LoginOutcome.PRIMARY_REJECTED),
            headers={"WWW-Authenticate": "Basic"},
        )
    return account_id


@router.get("/{account_id}")
def get_status(request: Request, account: str = Depends(operator_account)):
    manager = _manager(request)
    status = manager.status(account)
    return {"account_id": account, "status": status, "required": manager.is_required(account)}


@router.post("/{account_id}/enroll")
def enroll(request: Request, body: EnrollBody | None = None, account: str = Depends(operator_account)):
    """Start enrollment. The secret is returned here and never again."""
    try:
        started = _manager(request).start_enrollment(account, body.label if body else None)
    except AlreadyActive:
        raise HTTPException(status_code=409, detail="Two-factor authentication is already enabled")
    return {"secret": started.secret_base32, "provisioning_uri": started.provisioning_uri}


@router.post("/{account_id}/confirm")
def confirm(body: ConfirmBody, request: Request, account: str = Depends(operator_account)):
    try:
        _manager(request).confirm_enrollment(account, body.code)
    except CodeMismatch:
        raise HTTPException(status_code=400, detail=ENROLLMENT_MISMATCH_MESSAGE)
    except AlreadyActive:
        raise HTTPException(status_code=409, detail="Two-factor authentication is already enabled")
    except NotPending:
        raise HTTPException(status_code=409, detail="No enrollment in progress")
    return {"ok": True}


@router.post("/{account_id}/disable")
def disable(request: Request, body: DisableBody | None = None, account: str = Depends(operator_account)):
    """Disable an active second factor, or cancel a pending enrollment."""
    manager = _manager(request)
    if manager.is_required(account):
        code = body.code if body and body.code else ""
        result = manager.verify_login_code(account, code)
        if not result.ok:
            raise HTTPException(
                status_code=401,
                detail=outcome_message(LoginOutcome.SECOND_FACTOR_REJECTED),
            )
    manager.disable(account)
    return {"ok": True}
