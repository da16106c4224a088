"""Operator sign-in API."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from authlink.auth.login import outcome_message
from authlink.models import LoginOutcome

router = APIRouter(tags=["login"])

_OK = (LoginOutcome.AUTHENTICATED, LoginOutcome.SECOND_FACTOR_REQUIRED)


class LoginBody(BaseModel):
    username: str
    password: str
    totp_code: str | None = None


@router.post("/api/login")
def login(body: LoginBody, request: Request):
    coordinator = request.app.state.services.login
    outcome = coordinator.attempt(body.username, body.password, body.totp_code)
    return JSONResponse(
        status_code=200 if outcome in _OK else 401,
        content={"outcome": outcome.value, "message": outcome_message(outcome)},
    )
