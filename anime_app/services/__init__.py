from flask import current_app

from ..extensions import db
from .annict import AnnictClient, AnnictWork
from .auth import Authenticator
from .catalog import AnimeResolver, CatalogQuery
from .reviews import ReviewLedger


def annict_client() -> AnnictClient:
    return current_app.extensions["annict"]


def resolver() -> AnimeResolver:
    return AnimeResolver(db.session, annict_client())


def catalog() -> CatalogQuery:
    return CatalogQuery(db.session, resolver())


def ledger() -> ReviewLedger:
    return ReviewLedger(db.session, resolver())


def authenticator() -> Authenticator:
    return Authenticator(
        db.session,
        current_app.config["SECRET_KEY"],
        current_app.config["AUTH_TOKEN_TTL"],
    )


__all__ = [
    "AnnictClient",
    "AnnictWork",
    "AnimeResolver",
    "Authenticator",
    "CatalogQuery",
    "ReviewLedger",
    "annict_client",
    "authenticator",
    "catalog",
    "ledger",
    "resolver",
]
