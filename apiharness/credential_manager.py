# apiharness/credential_manager.py
"""
Token Store

Create / list / update / delete API credentials on top of a BlobStore.

- Tokens get a generated id at creation; test runs refer to them by id only
- Blank (empty or whitespace-only) name or secret is rejected, store unchanged
- Logs never include secrets
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, List, Optional

from apiharness.blob_store import BlobStore
from apiharness.models import AuthToken, TokenKind

logger = logging.getLogger(__name__)

TOKEN_KIND = "token"


class TokenStore:
    def __init__(self, store: BlobStore):
        self._store = store
        self.last_error: Optional[str] = None

    # -------------------- Public API --------------------

    def list_tokens(self) -> List[AuthToken]:
        tokens = [AuthToken.from_dict(v) for v in self._store.list(TOKEN_KIND).values()]
        return sorted(tokens, key=lambda t: t.created_at)

    def get_token(self, token_id: str) -> Optional[AuthToken]:
        if not token_id:
            return None
        data = self._store.get(TOKEN_KIND, token_id)
        return AuthToken.from_dict(data) if data else None

    def add_token(
        self,
        name: str,
        secret: str,
        kind: str | TokenKind = TokenKind.BEARER,
        description: Optional[str] = None,
    ) -> Optional[AuthToken]:
        """
        Store a new token.

        Returns:
            The created token, or None (store unchanged) when name or secret
            is blank or the kind is unknown. ``last_error`` says why.
        """
        if not _filled(name) or not _filled(secret):
            self.last_error = "name_and_secret_required"
            logger.warning("Token not added: name and secret are required")
            return None
        try:
            token_kind = TokenKind.parse(kind)
        except ValueError as e:
            self.last_error = "invalid_kind"
            logger.warning(f"Token not added: {e}")
            return None

        token = AuthToken(
            id=uuid.uuid4().hex,
            name=name,
            secret=secret,
            kind=token_kind,
            description=description or None,
            created_at=datetime.now().isoformat(),
        )
        self._store.put(TOKEN_KIND, token.id, token.to_dict())
        self.last_error = None
        logger.info(f"✅ Token '{token.name}' added ({token.kind.value}, id={token.id})")
        return token

    def update_token(self, token_id: str, **changes: Any) -> Optional[AuthToken]:
        """Edit name / secret / kind / description of an existing token."""
        current = self.get_token(token_id)
        if current is None:
            self.last_error = "not_found"
            return None

        allowed = {"name", "secret", "kind", "description"}
        unknown = set(changes) - allowed
        if unknown:
            raise TypeError(f"Unknown token fields: {sorted(unknown)}")

        if "kind" in changes:
            try:
                changes["kind"] = TokenKind.parse(changes["kind"])
            except ValueError as e:
                self.last_error = "invalid_kind"
                logger.warning(f"Token not updated: {e}")
                return None

        updated = replace(current, **changes)
        if not _filled(updated.name) or not _filled(updated.secret):
            self.last_error = "name_and_secret_required"
            logger.warning("Token not updated: name and secret are required")
            return None

        self._store.put(TOKEN_KIND, updated.id, updated.to_dict())
        self.last_error = None
        logger.info(f"✏️ Token '{updated.name}' updated (id={updated.id})")
        return updated

    def delete_token(self, token_id: str) -> bool:
        deleted = self._store.delete(TOKEN_KIND, token_id)
        if deleted:
            logger.info(f"🗑️ Token {token_id} deleted")
        else:
            self.last_error = "not_found"
        return deleted


def _filled(value: Optional[str]) -> bool:
    return bool(value and value.strip())
