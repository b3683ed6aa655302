"""Scheduler-triggered endpoints: /api/v1/cron/*."""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.config import get_settings
from goalplanner.database import get_session
from goalplanner.dependencies import get_email
from goalplanner.email.service import EmailService
from goalplanner.reminders.service import send_daily_check_in_reminders

router = APIRouter(prefix="/api/v1/cron", tags=["Cron"])

_bearer = HTTPBearer(auto_error=False)


def require_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> None:
    """Only the external scheduler, holding the shared secret, may trigger jobs."""
    secret = get_settings().cron_secret
    if not secret or credentials is None or not hmac.compare_digest(credentials.credentials, secret):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/check-in-reminders", dependencies=[Depends(require_cron_secret)])
async def check_in_reminders(
    db: AsyncSession = Depends(get_session),
    email_service: EmailService = Depends(get_email),
) -> dict[str, object]:
    sent = await send_daily_check_in_reminders(db, email_service)
    return {"success": True, "sent": sent}
