# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/salesledger/routes/auth.py
"""
Authentication API routes

- POST /register: self-service account creation (role "user")
- POST /login: username or email + password -> bearer token
- POST /logout: revoke the presented token
- GET  /me: current user and capabilities
- POST /password/change: verify current password, set a new one and
  revoke every other session of the account
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..permissions import Role
from ..services import auth_service, permission_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client_info() -> tuple[str | None, str | None]:
    return request.headers.get("User-Agent"), request.remote_addr


@auth_bp.post("/register")
def register_route():
    """
    Create an account and sign it in.

    Body: username, name, email, password, password_confirmation
    """
    data = request.get_json(silent=True) or {}

    user = auth_service.create_user(
        username=data.get("username"),
        name=data.get("name"),
        email=data.get("email"),
        password=data.get("password"),
        role=Role.USER,
        password_confirmation=data.get("password_confirmation"),
        require_confirmation=True,
    )

    user_agent, ip_address = _client_info()
    _session, token = session_service.create_session(user.id, user_agent=user_agent, ip_address=ip_address)

    return jsonify({
        "message": "User registered successfully",
        "user": user.to_dict(),
        "token": token,
    }), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    login = data.get("username") or data.get("email")
    password = data.get("password")

    if not login or not password:
        errors = {}
        if not login:
            errors["username"] = ["The username or email field is required."]
        if not password:
            errors["password"] = ["The password field is required."]
        return jsonify({"message": "Validation failed", "errors": errors}), 422

    user_agent, ip_address = _client_info()
    user = auth_service.authenticate(login, password)
    if not user:
        permission_service.log_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            reason=f"Invalid credentials for {login[:64]!r}",
        )
        return jsonify({"message": "Invalid credentials"}), 401

    session, token = session_service.create_session(user.id, user_agent=user_agent, ip_address=ip_address)
    actor = session_service.actor_for(user)

    return jsonify({
        "message": "Login successful",
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "capabilities": sorted(permission_service.get_actor_capabilities(actor)),
    })


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token, reason="User logout")
    permission_service.log_security_event(
        user_id=g.actor.id,
        event_type="LOGOUT",
        success=True,
    )
    return jsonify({"message": "Logout successful"})


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "capabilities": sorted(permission_service.get_actor_capabilities(g.actor)),
    })


@auth_bp.post("/password/change")
@require_auth
def change_password_route():
    """
    Body: current_password, new_password, new_password_confirmation

    Other sessions are revoked; the one making this request stays valid.
    """
    data = request.get_json(silent=True) or {}

    auth_service.change_password(
        g.current_user,
        data.get("current_password"),
        data.get("new_password"),
        data.get("new_password_confirmation"),
    )
    revoked = session_service.revoke_all_user_sessions(
        g.actor.id,
        reason="Password changed",
        except_session_id=g.session_context.session.id,
    )

    return jsonify({"message": "Password changed successfully", "revoked_sessions": revoked})
