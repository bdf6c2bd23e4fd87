import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import Internal, InvalidInput
from ..models.anime import Anime
from ..models.review import Review
from .annict import AnnictWork

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50


def anime_values(work: AnnictWork) -> Dict[str, Any]:
    """
    Map a provider work onto an animes row.

    A missing season year is stored as 0, which the local cache treats as
    "unknown". A missing image stays None.
    """
    return {
        "annict_id": work.annict_id,
        "title": work.title,
        "year": work.season_year if work.season_year is not None else 0,
        "image_url": work.image_url or None,
    }


class AnimeResolver:
    """Cache-aside lookup of animes by Annict id."""

    def __init__(self, session, client):
        self.session = session
        self.client = client

    def find(self, annict_id: int) -> Optional[Anime]:
        try:
            return self.session.query(Anime).filter_by(annict_id=annict_id).first()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal(f"failed to look up anime {annict_id}") from exc

    def resolve(self, annict_id: int) -> Anime:
        if isinstance(annict_id, bool) or not isinstance(annict_id, int) or annict_id <= 0:
            raise InvalidInput("annict_id must be a positive integer")

        anime = self.find(annict_id)
        if anime is not None:
            logger.debug("Cache hit for annict_id=%s", annict_id)
            return anime

        logger.info("Cache miss for annict_id=%s, fetching from Annict", annict_id)
        # NotFound / UpstreamUnavailable propagate unchanged
        work = self.client.get_work(annict_id)

        try:
            anime_id = self._upsert(anime_values(work))
            self.session.commit()
            anime = self.session.get(Anime, anime_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal(f"failed to store anime {annict_id}") from exc

        logger.info("Cached anime id=%s annict_id=%s", anime_id, annict_id)
        return anime

    def _upsert(self, values: Dict[str, Any]) -> int:
        """
        Insert keyed on annict_id. On conflict only the title is refreshed,
        and the id of the surviving row is returned either way.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            return self._insert_or_fetch(values)

        stmt = insert(Anime).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["annict_id"],
            set_={"title": stmt.excluded.title},
        ).returning(Anime.id)
        return self.session.execute(stmt).scalar_one()

    def _insert_or_fetch(self, values: Dict[str, Any]) -> int:
        # Dialects without ON CONFLICT: let the unique constraint decide
        try:
            with self.session.begin_nested():
                anime = Anime(**values)
                self.session.add(anime)
            return anime.id
        except IntegrityError:
            existing = self.session.query(Anime).filter_by(annict_id=values["annict_id"]).one()
            existing.title = values["title"]
            self.session.flush()
            return existing.id


def clamp_page(page: Optional[int], page_size: Optional[int]):
    if not page or page < 1:
        page = 1
    if not page_size or page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(page_size, MAX_PAGE_SIZE)
    return page, page_size


class CatalogQuery:
    """
    Ranked, paginated reads over the cached catalog.

    Ranking: average score desc, review count desc, created_at desc, id desc.
    Animes without reviews rank with count 0 and average 0. A single page is
    deterministic for a stable snapshot; rows written during a multi-page
    scan may shift across page boundaries.
    """

    def __init__(self, session, resolver: Optional[AnimeResolver] = None):
        self.session = session
        self.resolver = resolver

    def _stats_subquery(self):
        return (
            self.session.query(
                Review.anime_id.label("anime_id"),
                func.count(Review.id).label("review_count"),
                func.avg(Review.score).label("avg_score"),
            )
            .group_by(Review.anime_id)
            .subquery()
        )

    @staticmethod
    def _stats_dict(anime_id, review_count, avg_score) -> Dict[str, Any]:
        return {
            "anime_id": anime_id,
            "review_count": int(review_count or 0),
            "avg_score": float(avg_score or 0),
        }

    def list(self, page: Optional[int] = 1, page_size: Optional[int] = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        page, page_size = clamp_page(page, page_size)
        offset = (page - 1) * page_size

        stats = self._stats_subquery()
        review_count = func.coalesce(stats.c.review_count, 0).label("review_count")
        avg_score = func.coalesce(stats.c.avg_score, 0).label("avg_score")

        try:
            total = self.session.query(func.count(Anime.id)).scalar() or 0
            rows = (
                self.session.query(Anime, review_count, avg_score)
                .outerjoin(stats, stats.c.anime_id == Anime.id)
                .order_by(
                    avg_score.desc(),
                    review_count.desc(),
                    Anime.created_at.desc(),
                    Anime.id.desc(),
                )
                .limit(page_size)
                .offset(offset)
                .all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal("failed to list animes") from exc

        items = []
        for anime, count, avg in rows:
            item = anime.to_dict()
            stat = self._stats_dict(anime.id, count, avg)
            item["review_count"] = stat["review_count"]
            item["avg_score"] = stat["avg_score"]
            items.append(item)

        return {
            "items": items,
            "pagination": {
                "page": page,
                "page_size": page_size,
                "total": total,
                "total_pages": math.ceil(total / page_size),
            },
        }

    def stats_for(self, anime_id: int) -> Dict[str, Any]:
        try:
            count, avg = (
                self.session.query(func.count(Review.id), func.avg(Review.score))
                .filter(Review.anime_id == anime_id)
                .one()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal(f"failed to read stats for anime {anime_id}") from exc
        return self._stats_dict(anime_id, count, avg)

    def detail(self, annict_id: int):
        """Resolve an anime (caching it on first view) and read its stats."""
        anime = self.resolver.resolve(annict_id)
        return anime, self.stats_for(anime.id)
