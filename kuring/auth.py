import time
from functools import wraps

import jwt
from django.conf import settings

from .views import api_error

STAFF_ROLES = ("owner", "kasir", "dapur", "pelayan")


def _extract_token(request):
    auth = request.META.get("HTTP_AUTHORIZATION", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip()
    return None


def issue_staff_token(staff_id, role="kasir", ttl_seconds=12 * 3600):
    now = int(time.time())
    claims = {"sub": str(staff_id), "role": role, "iat": now, "exp": now + ttl_seconds}
    return jwt.encode(claims, settings.STAFF_JWT_SECRET, algorithm="HS256")


def staff_token_required(view):
    """Reject requests that do not carry a valid staff bearer token.

    The decoded claims are attached to ``request.staff_claims`` and the staff
    identifier to ``request.staff_id``.
    """
    @wraps(view)
    def _wrapped(request, *args, **kwargs):
        token = _extract_token(request)
        if not token:
            return api_error("token required", status=401)
        try:
            claims = jwt.decode(token, settings.STAFF_JWT_SECRET, algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            return api_error("token expired", status=401)
        except jwt.InvalidTokenError:
            return api_error("invalid token", status=401)
        if claims.get("role") not in STAFF_ROLES:
            return api_error("Forbidden: staff role required", status=403)
        request.staff_claims = claims
        request.staff_id = claims.get("sub")
        return view(request, *args, **kwargs)
    return _wrapped
