import secrets
from flask import request, jsonify

from security.session import current_policy

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

# state-changing requests that may arrive before a session exists
CSRF_EXEMPT_PATHS = {"/auth/login", "/auth/register"}

def issue_csrf_token(resp):
    token = secrets.token_urlsafe(32)
    policy = current_policy()
    resp.set_cookie(
        CSRF_COOKIE,
        token,
        httponly=False,  # must be readable by client JS
        secure=policy.secure,
        samesite=policy.samesite,
        path="/",
    )
    return resp

def require_csrf():
    cookie_token = request.cookies.get(CSRF_COOKIE)
    header_token = request.headers.get(CSRF_HEADER)
    if not cookie_token or not header_token or not secrets.compare_digest(cookie_token, header_token):
        return jsonify(error="CSRF validation failed"), 403
    return None

def csrf_protect(user):
    """before_request hook body: only authenticated, state-changing requests are checked."""
    if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
        return None
    if request.path in CSRF_EXEMPT_PATHS or user is None:
        return None
    return require_csrf()
