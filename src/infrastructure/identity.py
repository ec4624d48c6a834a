"""
Identity provider client.

Verifies Firebase ID tokens with ``google-auth`` and returns the verified
uid.  Token issuance and revocation lists stay with the provider; this
module only consumes them.
"""

from __future__ import annotations

import logging
from typing import Protocol

from google.auth.exceptions import GoogleAuthError, TransportError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2 import id_token
from starlette.concurrency import run_in_threadpool

from src.domain.errors import AuthError, StoreUnavailableError

logger = logging.getLogger(__name__)


class IdentityService(Protocol):
    async def authenticate(self, token: str) -> str:
        """Return the verified actor id for *token* or raise ``AuthError``."""
        ...


class FirebaseIdentityService:
    def __init__(self, project_id: str):
        self.project_id = project_id
        self._request = GoogleRequest()

    async def authenticate(self, token: str) -> str:
        if not self.project_id:
            raise AuthError("Identity provider is not configured")
        try:
            # Certificate fetch and signature check are blocking
            info = await run_in_threadpool(
                id_token.verify_firebase_token,
                token,
                self._request,
                audience=self.project_id,
            )
        except TransportError as exc:
            logger.warning("Identity provider unreachable: %s", exc)
            raise StoreUnavailableError(
                "Service temporarily unavailable, please retry"
            ) from exc
        except (ValueError, GoogleAuthError) as exc:
            message = "Token expired" if "expired" in str(exc).lower() else "Invalid token"
            raise AuthError(message) from exc

        uid = (info or {}).get("user_id") or (info or {}).get("sub")
        if not uid:
            raise AuthError("Invalid token")
        return uid
