"""Caller identity resolution.

Credential issuance lives outside this service. The API only needs something
that turns a bearer credential into a stable user id.
"""

import hmac
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .errors import Unauthorized


class IdentityProvider(ABC):
    """Resolves a bearer credential to a user id."""

    @abstractmethod
    def resolve(self, credential: str) -> Optional[str]:
        """Return the user id for ``credential`` or None if it is not valid."""

    def authenticate(self, authorization: Optional[str]) -> str:
        """Validate an ``Authorization`` header value.

        Raises:
            Unauthorized: If the header is missing, malformed or unknown
        """
        if not authorization:
            raise Unauthorized("Unauthorized")
        scheme, _, credential = authorization.strip().partition(" ")
        if scheme.lower() != "bearer" or not credential.strip():
            raise Unauthorized("Unauthorized")
        user_id = self.resolve(credential.strip())
        if not user_id:
            raise Unauthorized("Unauthorized")
        return user_id


class StaticTokenIdentityProvider(IdentityProvider):
    """Identity provider backed by a fixed token -> user id map."""

    def __init__(self, tokens: Dict[str, str]):
        self._tokens = dict(tokens)

    def resolve(self, credential: str) -> Optional[str]:
        for token, user_id in self._tokens.items():
            if hmac.compare_digest(token.encode(), credential.encode()):
                return user_id
        return None
