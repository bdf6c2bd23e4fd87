from flask import Blueprint, jsonify, request

from ..errors import InvalidInput
from ..services import annict_client, catalog

animes_bp = Blueprint("animes", __name__)

SEARCH_DEFAULT_LIMIT = 15


@animes_bp.get("/animes")
def list_animes():
    """
    Cached animes ranked by average score, with review count and pagination.
    """
    try:
        page = int(request.args.get("page", 1))
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(request.args.get("page_size", 10))
    except (TypeError, ValueError):
        page_size = 10

    return jsonify(catalog().list(page, page_size))


@animes_bp.get("/animes/search")
def search_animes():
    # Straight to Annict; search results are not cached locally
    q = (request.args.get("q") or "").strip()
    if not q:
        raise InvalidInput("search keyword 'q' is required")
    try:
        limit = int(request.args.get("limit", SEARCH_DEFAULT_LIMIT))
    except (TypeError, ValueError):
        limit = SEARCH_DEFAULT_LIMIT
    cursor = (request.args.get("cursor") or "").strip() or None

    works, next_cursor = annict_client().search_works(q, limit=limit, after=cursor)
    return jsonify({"data": [w.to_dict() for w in works], "next_cursor": next_cursor})


@animes_bp.get("/animes/<int:annict_id>")
def get_anime(annict_id):
    anime, stats = catalog().detail(annict_id)
    return jsonify({"anime": anime.to_dict(), "stats": stats})
