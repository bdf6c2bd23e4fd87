import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import Conflict, Internal, InvalidInput
from ..models.anime import Anime
from ..models.review import Review
from .catalog import AnimeResolver

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100


def validate_score(score) -> int:
    if isinstance(score, bool) or not isinstance(score, int):
        raise InvalidInput(f"score must be an integer between {MIN_SCORE} and {MAX_SCORE}")
    if not (MIN_SCORE <= score <= MAX_SCORE):
        raise InvalidInput(f"score must be between {MIN_SCORE} and {MAX_SCORE}")
    return score


class ReviewLedger:
    """
    One review per (user, anime).

    The existence check before insert is an early exit only. Two concurrent
    submissions can both pass it; the uq_review_user_anime constraint
    rejects the second insert, which is reported as Conflict.
    """

    def __init__(self, session, resolver: AnimeResolver):
        self.session = session
        self.resolver = resolver

    def _find_existing(self, user_id: int, anime_id: int) -> Optional[Review]:
        return self.session.query(Review).filter_by(user_id=user_id, anime_id=anime_id).first()

    def create_review(self, user_id: int, annict_id: int, score, comment: Optional[str] = None) -> Review:
        score = validate_score(score)
        if comment is not None and not isinstance(comment, str):
            raise InvalidInput("comment must be a string")
        comment = (comment or "").strip() or None

        anime = self.resolver.resolve(annict_id)

        try:
            existing = self._find_existing(user_id, anime.id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal("failed to check existing review") from exc
        if existing is not None:
            logger.info("Rejected duplicate review user_id=%s anime_id=%s", user_id, anime.id)
            raise Conflict("you have already reviewed this anime")

        review = Review(user_id=user_id, anime_id=anime.id, score=score, comment=comment)
        self.session.add(review)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            try:
                existing = self._find_existing(user_id, anime.id)
            except SQLAlchemyError as lookup_exc:
                self.session.rollback()
                raise Internal("failed to create review") from lookup_exc
            if existing is not None:
                logger.info("Lost review insert race user_id=%s anime_id=%s", user_id, anime.id)
                raise Conflict("you have already reviewed this anime") from exc
            raise Internal("failed to create review") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal("failed to create review") from exc

        return review

    def list_by_anime(self, anime_id: int) -> List[Review]:
        try:
            return (
                self.session.query(Review)
                .filter(Review.anime_id == anime_id)
                .order_by(Review.created_at.desc(), Review.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal(f"failed to list reviews for anime {anime_id}") from exc

    def list_by_user_with_anime(self, user_id: int) -> List[Dict[str, Any]]:
        try:
            rows = (
                self.session.query(Review, Anime)
                .join(Anime, Review.anime_id == Anime.id)
                .filter(Review.user_id == user_id)
                .order_by(Review.created_at.desc(), Review.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal(f"failed to list reviews for user {user_id}") from exc

        out = []
        for review, anime in rows:
            item = review.to_dict()
            item["anime_annict_id"] = anime.annict_id
            item["anime_title"] = anime.title
            item["anime_year"] = anime.year
            item["anime_image_url"] = anime.image_url
            out.append(item)
        return out
