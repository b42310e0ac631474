import hmac

from fastapi import HTTPException, Request, status

from config import settings


def get_current_user_id(request: Request) -> str:
    """
    Identity of the already-authenticated caller.

    Session handling lives in the gateway in front of this service; it
    forwards the user id in ``settings.USER_ID_HEADER``.
    """
    header_name = (settings.USER_ID_HEADER or "").strip() or "X-User-Id"
    user_id = (request.headers.get(header_name) or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user_id


def require_admin(request: Request) -> None:
    expected = (settings.ADMIN_API_TOKEN or "").strip()
    if not expected:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    supplied = (request.headers.get("X-Admin-Token") or "").strip()
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin token required")
