"""
API Dependencies

FastAPI dependency injection for authentication and billing services.

Security: user tokens are Firebase ID tokens verified cryptographically
against Google's JWKS (RS256), with an HS256 fallback via AUTH_JWT_SECRET.
Never decode without verification.
"""

import logging
import secrets
from typing import Optional

import jwt
from jwt import PyJWKClient
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config.settings import get_settings
from app.domain.identity import IdentityResolver
from app.domain.services import SubscriptionService
from app.domain.webhook_dispatcher import WebhookDispatcher
from app.infrastructure.db.dependencies import (
    get_user_repository,
    get_webhook_log_repository,
)
from app.infrastructure.db.repositories import UserRepository, WebhookLogRepository
from app.infrastructure.exceptions import ConfigurationError
from app.infrastructure.payments import AsaasClient, get_asaas_client


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

FIREBASE_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/"
    "securetoken@system.gserviceaccount.com"
)
FIREBASE_ISSUER_PREFIX = "https://securetoken.google.com/"

# PyJWKClient caches keys internally.
_jwks_client: Optional[PyJWKClient] = None


def _get_jwks_client() -> PyJWKClient:
    """Return a singleton PyJWKClient for the Firebase JWKS endpoint."""
    global _jwks_client
    if _jwks_client is None:
        _jwks_client = PyJWKClient(FIREBASE_JWKS_URL, cache_keys=True)
    return _jwks_client


def _decode_with_jwks(token: str, project_id: str) -> dict:
    """Verify a Firebase ID token (RS256)."""
    client = _get_jwks_client()
    signing_key = client.get_signing_key_from_jwt(token)
    return jwt.decode(
        token,
        signing_key.key,
        algorithms=["RS256"],
        issuer=f"{FIREBASE_ISSUER_PREFIX}{project_id}",
        audience=project_id,
        options={"require": ["exp", "sub", "iss"]},
    )


def _decode_with_secret(token: str, secret: str) -> dict:
    """Verify a token signed with the shared HS256 secret."""
    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        options={"require": ["exp", "sub"], "verify_aud": False},
    )


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Extract and verify the user ID from a bearer token.

    Verification strategy (in order):
      1. Firebase JWKS (RS256), when FIREBASE_PROJECT_ID is set.
      2. HS256 with AUTH_JWT_SECRET, when set.

    Returns:
        Authenticated user ID (``sub`` claim).

    Raises:
        HTTPException 401: token missing, expired, or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    settings = get_settings()

    payload: Optional[dict] = None

    if settings.firebase_project_id:
        try:
            payload = _decode_with_jwks(token, settings.firebase_project_id)
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
            )
        except (jwt.exceptions.PyJWKClientError, jwt.InvalidTokenError) as jwks_err:
            logger.debug("JWKS verification failed, trying HS256 fallback: %s", jwks_err)

    if payload is None and settings.auth_jwt_secret:
        try:
            payload = _decode_with_secret(token, settings.auth_jwt_secret)
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
            )
        except jwt.InvalidTokenError as e:
            logger.warning("HS256 JWT verification also failed: %s", e)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or unverifiable token",
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user ID",
        )

    return user_id


async def verify_admin_api_key(
    x_admin_key: str = Header(..., description="Admin API key for protected operations"),
) -> bool:
    """Verify the X-Admin-Key header against ADMIN_API_KEY."""
    expected_key = get_settings().admin_api_key

    if not expected_key:
        logger.error("ADMIN_API_KEY environment variable not set")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin authentication not configured",
        )

    if not secrets.compare_digest(x_admin_key, expected_key):
        logger.warning("Invalid admin API key attempt")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key",
        )

    return True


# =============================================================================
# Billing Services
# =============================================================================

def get_gateway() -> AsaasClient:
    """Gateway client for routes that cannot work without it (503 otherwise)."""
    return get_asaas_client()


def get_optional_gateway() -> Optional[AsaasClient]:
    """
    Gateway client, or None when the gateway is not configured.

    Webhook processing and local cancellation still work without it.
    """
    try:
        return get_asaas_client()
    except ConfigurationError as e:
        logger.warning(f"Payment gateway unavailable: {e.message}")
        return None


async def get_subscription_service(
    users: UserRepository = Depends(get_user_repository),
    gateway: Optional[AsaasClient] = Depends(get_optional_gateway),
) -> SubscriptionService:
    return SubscriptionService(users, gateway)


async def get_identity_resolver(
    users: UserRepository = Depends(get_user_repository),
    gateway: Optional[AsaasClient] = Depends(get_optional_gateway),
) -> IdentityResolver:
    return IdentityResolver(users, gateway)


async def get_webhook_dispatcher(
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    logs: WebhookLogRepository = Depends(get_webhook_log_repository),
) -> WebhookDispatcher:
    return WebhookDispatcher(subscriptions, resolver, logs)


# =============================================================================
# Re-export DB dependencies for a single import source
# Routers should import from api.dependencies, not db.dependencies directly.
# =============================================================================
from app.infrastructure.db.dependencies import (  # noqa: E402, F401
    SessionDep,
    UserRepoDep,
    WebhookLogRepoDep,
)
