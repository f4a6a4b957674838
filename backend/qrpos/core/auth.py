"""
Authentication dependencies for the QR POS backend
Validates bearer JWTs issued by the auth frontend and provides user context
"""
import os
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel


# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

# Role hierarchy: admin > manager > waiter = kitchen
ROLE_HIERARCHY = {
    "admin": 3,
    "manager": 2,
    "waiter": 1,
    "kitchen": 1,
}


class TokenUser(BaseModel):
    """User data extracted from JWT token"""
    id: str
    email: str
    name: Optional[str] = None
    role: str = "waiter"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def has_role(self, required_role: str) -> bool:
        return ROLE_HIERARCHY.get(self.role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


class AuthConfig:
    """Authentication configuration"""

    @staticmethod
    def get_auth_secret() -> str:
        """Get the AUTH_SECRET from environment"""
        secret = os.getenv("AUTH_SECRET")
        if not secret:
            raise ValueError("AUTH_SECRET environment variable is not set")
        return secret

    @staticmethod
    def get_jwt_algorithm() -> str:
        return "HS256"


def decode_token(token: str) -> dict:
    """
    Decode and validate a bearer JWT.

    Expected payload:
    {
        "sub": "user_id",
        "email": "ana@restaurant.cl",
        "name": "Ana",
        "role": "manager",
        "exp": 1234567890
    }
    """
    try:
        return jwt.decode(
            token,
            AuthConfig.get_auth_secret(),
            algorithms=[AuthConfig.get_jwt_algorithm()],
            options={"verify_aud": False}
        )
    except JWTError as e:
        if "expired" in str(e).lower():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"}
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"}
        )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenUser:
    """
    Dependency that extracts and validates the current user from JWT.

    Usage:
        @router.get("/protected")
        async def protected_route(user: TokenUser = Depends(get_current_user)):
            return {"message": f"Hello {user.email}"}
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )

    payload = decode_token(credentials.credentials)

    user_id = payload.get("id") or payload.get("sub")
    email = payload.get("email")

    if not user_id or not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing user id or email",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return TokenUser(
        id=str(user_id),
        email=email,
        name=payload.get("name"),
        role=str(payload.get("role", "waiter")).lower()
    )


def require_role(required_role: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/execute")
        async def execute(user: TokenUser = Depends(require_role("manager"))):
            ...
    """
    async def role_checker(
        user: TokenUser = Depends(get_current_user)
    ) -> TokenUser:
        if not user.has_role(required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {required_role}, your role: {user.role}"
            )
        return user

    return role_checker


# Convenience dependencies for common role requirements
require_admin = require_role("admin")
require_manager = require_role("manager")
require_staff = require_role("waiter")
