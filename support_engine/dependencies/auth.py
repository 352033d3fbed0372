from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from support_engine.core.config import Settings, get_settings

bearer_scheme = HTTPBearer(auto_error=False)

BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


@dataclass(slots=True, frozen=True)
class SupportUser:
    """Support team member authenticated by an API token."""

    username: str


async def get_support_user(credentials: BearerCredentials, settings: SettingsDep) -> SupportUser:
    """Map the bearer token onto one of the configured support users."""

    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing authentication credentials")
    for token, username in settings.support_api_tokens.items():
        if hmac.compare_digest(credentials.credentials, token):
            return SupportUser(username=username)
    raise HTTPException(status_code=401, detail="Invalid authentication credentials")


async def require_cron_secret(credentials: BearerCredentials, settings: SettingsDep) -> None:
    """Guard for scheduler triggered endpoints."""

    if not settings.cron_secret:
        raise HTTPException(status_code=503, detail="Cron secret is not configured")
    if credentials is None or not hmac.compare_digest(credentials.credentials, settings.cron_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")


CurrentSupportUser = Annotated[SupportUser, Depends(get_support_user)]
