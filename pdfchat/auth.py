"""
Clerk authentication dependency and utilities for FastAPI.
"""

import base64
from typing import Optional, Dict, Any
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging
import requests
import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .config import settings

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)

_jwks: Dict[str, Any] | None = None


def jwks_url() -> str:
    return settings.clerk_jwks_url or f"{settings.clerk_issuer.rstrip('/')}/.well-known/jwks.json"


def load_jwks(force_refresh: bool = False) -> Dict[str, Any]:
    global _jwks
    if _jwks is None or force_refresh:
        try:
            resp = requests.get(jwks_url(), timeout=5)
            resp.raise_for_status()
            _jwks = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Could not load JWKS: {e}")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Auth key fetch failed")
    return _jwks


def _find_key(jwks: Dict[str, Any], kid: Optional[str]) -> Optional[Dict[str, Any]]:
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


def jwk_to_pem(jwk_key: Dict[str, Any]) -> str:
    # RSA n/e -> PEM
    n_b64 = jwk_key.get("n")
    e_b64 = jwk_key.get("e")
    if not n_b64 or not e_b64:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid JWK")

    def b64url_to_int(b64: str) -> int:
        pad = "=" * (-len(b64) % 4)
        return int.from_bytes(base64.urlsafe_b64decode(b64 + pad), "big")

    pub = rsa.RSAPublicNumbers(b64url_to_int(e_b64), b64url_to_int(n_b64)).public_key()
    return pub.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


def get_public_key_pem(token: str) -> str:
    jwks = load_jwks()
    try:
        header = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    kid = header.get("kid")
    key = _find_key(jwks, kid)
    if key is None:
        # The issuer may have rotated its keys since the set was cached
        logger.info(f"Unknown signing key {kid}, refreshing JWKS")
        key = _find_key(load_jwks(force_refresh=True), kid)
    if key is not None:
        return jwk_to_pem(key)
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Public key not found")


def verify_token(token: str) -> Dict[str, Any]:
    try:
        public_key_pem = get_public_key_pem(token)
        return jwt.decode(
            token,
            public_key_pem,
            algorithms=["RS256"],
            issuer=settings.clerk_issuer,
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidIssuerError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid issuer")
    except jwt.InvalidTokenError as e:
        logger.error(f"JWT verification failed: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


class ClerkUser:
    """Represents an authenticated Clerk user."""

    def __init__(self, user_id: str, email: Optional[str] = None,
                 first_name: Optional[str] = None, last_name: Optional[str] = None):
        self.user_id = user_id
        self.email = email
        self.first_name = first_name
        self.last_name = last_name

    @property
    def display_name(self) -> Optional[str]:
        """Full name if known, else the email address."""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.last_name or self.email

    def __repr__(self) -> str:
        return f"ClerkUser(user_id={self.user_id!r})"


def extract_user_from_payload(payload: Dict[str, Any]) -> ClerkUser:
    """Extract user information from JWT payload."""
    user_id = payload.get("sub") or payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing user ID"
        )
    # Prefer direct claims typical in Clerk JWTs
    email = payload.get("email_address") or payload.get("email")
    if not email:
        emails = payload.get("email_addresses") or []
        if isinstance(emails, list) and emails:
            email = emails[0] if isinstance(emails[0], str) else emails[0].get("email_address")
    return ClerkUser(
        user_id=user_id,
        email=email,
        first_name=payload.get("first_name") or payload.get("given_name"),
        last_name=payload.get("last_name") or payload.get("family_name"),
    )


async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> ClerkUser:
    """
    Dependency to get the current authenticated user.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        ClerkUser: The authenticated user

    Raises:
        HTTPException: 401 if no valid token is present
    """
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(credentials.credentials)
    user = extract_user_from_payload(payload)
    logger.info(f"User authenticated: {user.user_id}")
    return user
