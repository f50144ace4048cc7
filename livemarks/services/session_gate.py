from flask import current_app
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from livemarks.extensions import db


class SessionLookupError(Exception):
    pass


def _load_current_user():
    if current_user.is_authenticated:
        return current_user._get_current_object()
    return None


def get_session_user():
    """The signed-in user, or None. Raises SessionLookupError if the lookup fails."""
    try:
        return _load_current_user()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Session user lookup failed: %s", exc)
        raise SessionLookupError(str(exc)) from exc
