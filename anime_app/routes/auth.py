from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from . import json_body
from ..services import authenticator

auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/signup")
def signup():
    data = json_body()
    auth = authenticator()
    user = auth.register(data.get("username"), data.get("email"), data.get("password"))
    return jsonify({"ok": True, "user": user.to_dict(), "token": auth.issue_token(user)}), 201


@auth_bp.post("/login")
def login():
    data = json_body()
    auth = authenticator()
    user = auth.authenticate(data.get("email"), data.get("password"))
    return jsonify({"ok": True, "user": user.to_dict(), "token": auth.issue_token(user)})


@auth_bp.get("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
