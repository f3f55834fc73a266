"""
Bearer token issuance and verification.

Tokens are opaque random strings kept in process memory with an expiry. The
verifier only vouches for an email; roles are always read from the store.
"""

import logging
import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from pydantic import BaseModel

from errors import Unauthenticated

logger = logging.getLogger(__name__)


class Principal(BaseModel):
    email: str


class TokenVerifier:
    def __init__(self, ttl_hours: int = 1):
        self.ttl = timedelta(hours=ttl_hours)
        self._tokens: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def issue(self, email: str) -> str:
        token = secrets.token_urlsafe(32)
        now = datetime.now(timezone.utc)
        with self._lock:
            expired = [t for t, p in self._tokens.items() if p["expires_at"] <= now]
            for t in expired:
                del self._tokens[t]
            self._tokens[token] = {
                "email": email,
                "issued_at": now,
                "expires_at": now + self.ttl,
            }
        return token

    def verify(self, token: Optional[str]) -> Principal:
        if not token:
            raise Unauthenticated()
        with self._lock:
            payload = self._tokens.get(token)
            if payload and payload["expires_at"] <= datetime.now(timezone.utc):
                self._tokens.pop(token, None)
                logger.info("expired token presented for %s", payload["email"])
                payload = None
        if not payload:
            raise Unauthenticated()
        return Principal(email=payload["email"])
