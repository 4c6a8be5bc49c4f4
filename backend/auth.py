import hmac
import logging
from functools import wraps

from flask import current_app, request

from errors import Unauthorized

log = logging.getLogger("backend")


def check_api_key():
    """Reject the request unless it carries the configured device key.

    The key may come as an X-API-Key header or a `key` query parameter.
    An empty API_KEY setting turns the check off.
    """
    expected = current_app.config.get("API_KEY")
    if not expected:
        return
    supplied = request.headers.get("X-API-Key") or request.args.get("key")
    if not supplied or not hmac.compare_digest(supplied.encode(), expected.encode()):
        log.warning("Rejected %s %s: missing or invalid API key", request.method, request.path)
        raise Unauthorized()


def require_api_key(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        check_api_key()
        return view(*args, **kwargs)
    return wrapped
