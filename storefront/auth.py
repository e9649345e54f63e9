from fastapi import Header, HTTPException, Request
from jose import JWTError, jwt


def current_user(request: Request, authorization: str | None = Header(None)) -> str:
    """Return the caller's user id from the bearer token's ``sub`` claim."""
    settings = request.app.state.settings
    try:
        if not authorization or not settings.jwt_secret:
            raise ValueError("missing credentials")
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("unsupported scheme")
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")

    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or missing token")
    return str(user_id)
