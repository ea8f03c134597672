"""Optional Bearer token authentication for API endpoints."""

from fastapi import Header, HTTPException

from column_governance import config


async def require_bearer_token(authorization: str | None = Header(default=None)) -> None:
    """
    Dependency: when API_AUTH_TOKEN is set, require Authorization: Bearer <token>.
    Raises 401 if header is missing or token does not match. Without a
    configured token the API is open (local single-user deployments).
    """
    token = config.api_auth_token()
    if not token:
        return
    if not authorization or not authorization.strip().lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    value = authorization.strip()[7:].strip()
    if value != token:
        raise HTTPException(status_code=401, detail="Unauthorized")
