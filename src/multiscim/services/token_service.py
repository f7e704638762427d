import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from ..models import APIToken, Tenant
from ..utils import logger
from ..exceptions import InvalidValue, ResourceNotFound


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token."""
    return secrets.token_urlsafe(length)


def hash_token(token: str) -> str:
    """Generate SHA-256 hash of the token."""
    return hashlib.sha256(token.encode()).hexdigest()


class TokenService:
    """Bearer API tokens. Each token is bound to exactly one tenant."""

    @staticmethod
    async def create_token(
        tenant: Tenant,
        name: str,
        description: Optional[str] = None,
        expires_days: Optional[int] = None,
        scopes: Optional[List[str]] = None,
        created_by: str = "CLI",
    ) -> Tuple[APIToken, str]:
        """
        Issue a token for a tenant.

        Returns:
            The stored token record and the raw token. Only the hash is persisted,
            so the raw value cannot be recovered later.
        """
        if not name or not name.strip():
            raise InvalidValue("Token name is required")
        if expires_days is not None and expires_days <= 0:
            raise InvalidValue("expires_days must be greater than 0")

        raw_token = generate_secure_token()
        expires_at = None
        if expires_days:
            expires_at = datetime.now(timezone.utc) + timedelta(days=expires_days)

        api_token = await APIToken.create(
            name=name.strip(),
            token_hash=hash_token(raw_token),
            description=description,
            scopes=scopes or ["scim:read", "scim:write"],
            expires_at=expires_at,
            created_by=created_by,
            tenant=tenant,
        )
        logger.info(f"Issued API token '{api_token.name}' for tenant {tenant.tenant_key}")
        return api_token, raw_token

    @staticmethod
    async def authenticate(raw_token: str) -> Optional[APIToken]:
        """Return the active, unexpired token record for a raw bearer token."""
        api_token = await APIToken.filter(
            token_hash=hash_token(raw_token),
            active=True,
        ).prefetch_related("tenant").first()

        if api_token is None:
            return None

        if api_token.expires_at and api_token.expires_at < datetime.now(timezone.utc):
            logger.warning(f"Expired token used: {api_token.name}")
            return None

        api_token.last_used_at = datetime.now(timezone.utc)
        await api_token.save(update_fields=["last_used_at"])
        return api_token

    @staticmethod
    async def list_tokens(tenant: Optional[Tenant] = None, active_only: bool = True) -> List[APIToken]:
        query = APIToken.all()
        if tenant is not None:
            query = query.filter(tenant=tenant)
        if active_only:
            query = query.filter(active=True)
        return await query.prefetch_related("tenant").order_by("-created_at")

    @staticmethod
    async def revoke_token(token_id_prefix: str) -> APIToken:
        """
        Deactivate a token by id or by an unambiguous id prefix.

        Raises:
            ResourceNotFound: no token matches
            InvalidValue: the prefix matches more than one token
        """
        prefix = token_id_prefix.strip().lower()
        matches = [
            token for token in await APIToken.all().prefetch_related("tenant")
            if str(token.id).startswith(prefix)
        ]
        if not matches:
            raise ResourceNotFound("APIToken", token_id_prefix)
        if len(matches) > 1:
            raise InvalidValue(f"Multiple tokens found starting with '{token_id_prefix}'")

        token = matches[0]
        token.active = False
        await token.save(update_fields=["active"])
        logger.info(f"Revoked API token '{token.name}' ({token.id})")
        return token
