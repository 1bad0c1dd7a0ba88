"""Caller identity and operator authentication.

Every write carries the caller's address in ``X-Sender-Address``; the engine
uses it as the policyholder, the oracle reporter or the cancelling party.
Operator endpoints (faucet deposits, clock control, oracle deactivation)
require ``Authorization: Bearer <ADMIN_SECRET>``.
"""

from __future__ import annotations

import secrets

from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from cropshield.core.config import settings

SENDER_HEADER = "X-Sender-Address"

sender_scheme = APIKeyHeader(
    name=SENDER_HEADER,
    scheme_name="Sender Address",
    description=f"Pass the calling address as: `{SENDER_HEADER}: <address>`",
    auto_error=False,
)

admin_scheme = HTTPBearer(
    scheme_name="Admin Secret",
    description="Pass the admin secret as: `Authorization: Bearer <ADMIN_SECRET>`",
)


async def require_sender(
    request: Request,
    sender: str | None = Security(sender_scheme),
) -> str:
    """Resolve the calling address for a write endpoint."""
    if sender is None or not sender.strip():
        raise HTTPException(
            status_code=401,
            detail={
                "code": "MISSING_SENDER",
                "message": f"The {SENDER_HEADER} header is required for this operation.",
            },
        )
    sender = sender.strip()
    request.state.sender = sender
    return sender


async def require_admin(
    credentials: HTTPAuthorizationCredentials = Security(admin_scheme),
) -> bool:
    if not secrets.compare_digest(credentials.credentials, settings.admin_secret):
        raise HTTPException(
            status_code=403,
            detail={
                "code": "FORBIDDEN",
                "message": "Invalid admin secret.",
            },
        )
    return True
