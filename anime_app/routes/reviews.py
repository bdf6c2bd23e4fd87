from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from . import json_body
from ..errors import InvalidInput
from ..services import ledger, resolver

reviews_bp = Blueprint("reviews", __name__)


@reviews_bp.post("/reviews")
@login_required
def create_review():
    data = json_body()
    annict_id = data.get("annict_id")
    if annict_id is None:
        raise InvalidInput("annict_id is required")

    review = ledger().create_review(
        current_user.id,
        annict_id,
        data.get("score"),
        data.get("comment"),
    )
    return jsonify({"ok": True, "review": review.to_dict()}), 201


@reviews_bp.get("/reviews")
def list_reviews():
    try:
        annict_id = int(request.args.get("annict_id", ""))
    except (TypeError, ValueError):
        raise InvalidInput("annict_id must be an integer")

    # Only cached animes can have reviews; no provider call here
    anime = resolver().find(annict_id)
    if anime is None:
        return jsonify({"data": []})
    reviews = ledger().list_by_anime(anime.id)
    return jsonify({"data": [r.to_dict() for r in reviews]})


@reviews_bp.get("/me/reviews")
@login_required
def my_reviews():
    return jsonify({"data": ledger().list_by_user_with_anime(current_user.id)})
