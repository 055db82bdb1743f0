import logging

from flask import Blueprint, session

from ..services.user_service import UserService
from ..utils.context import current_store
from ..utils.decorators import login_required
from ..utils.payload import Payload
from ..utils.responses import fail, ok

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/auth")


@bp.post("/login")
def login():
    p = Payload.from_request()
    username = p.get_str("username", required=True)
    password = p.get_str("password", required=True)
    p.validate()

    user = UserService.authenticate(current_store(), username, password)
    if user is None:
        logger.info("Failed login for %s", username)
        return fail("Invalid credentials", "InvalidCredentials", 401)

    session.clear()
    session["uid"] = user.user_id
    session["role"] = user.role
    session["username"] = user.username
    logger.info("User %s logged in", user.username)
    return ok(user.to_dict())


@bp.post("/logout")
def logout():
    session.clear()
    return ok()


@bp.get("/me")
@login_required
def me():
    return ok({
        "id": session.get("uid"),
        "username": session.get("username"),
        "role": session.get("role"),
    })
