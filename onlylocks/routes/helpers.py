from functools import wraps

from flask import current_app, request

from onlylocks import db
from onlylocks.errors import NotFoundError, UnauthorizedError, ValidationError


def get_or_404(model, object_id, label=None):
    """Fetch by primary key or raise NotFoundError"""
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(f"No {label or model.__name__.lower()}: {object_id}")
    return obj


def get_json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def body_value(data, *names, default=None):
    """First present key among names, so camelCase and snake_case both work"""
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return default


def optional_int(value, name):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def require_update_key(f):
    """Guard refresh endpoints with the shared UPDATE_API_KEY, when configured"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("UPDATE_API_KEY")
        if expected and request.headers.get("X-Update-Key") != expected:
            raise UnauthorizedError("Missing or invalid X-Update-Key header")
        return f(*args, **kwargs)

    return decorated_function
