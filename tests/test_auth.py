from datetime import timedelta

import pytest

from anime_app.errors import Conflict, InvalidInput, Unauthorized
from anime_app.models.user import User
from anime_app.services.auth import Authenticator, validate_username


@pytest.fixture
def auth(session):
    return Authenticator(session, "test-secret-key")


def test_register_hashes_password(auth, session):
    user = auth.register("alice", "a@x.com", "secret1")

    stored = session.get(User, user.id)
    assert stored.password_hash != "secret1"
    assert stored.check_password("secret1")
    assert not stored.check_password("wrong")
    assert "password_hash" not in user.to_dict()


@pytest.mark.parametrize(
    "username,valid",
    [("alice", True), ("a_b-c9", True), ("ab", False), ("a" * 50, True), ("a" * 51, False),
     ("has space", False), ("ユーザー", False), ("", False), (None, False),
     ("alice\n", False), (" alice", False), (123, False)],
)
def test_username_policy(username, valid):
    assert validate_username(username) is valid


def test_register_rejects_policy_violations(auth):
    with pytest.raises(InvalidInput):
        auth.register("ab", "a@x.com", "secret1")
    with pytest.raises(InvalidInput):
        auth.register("alice", "not-an-email", "secret1")
    with pytest.raises(InvalidInput):
        auth.register("alice", "a@x.com", "short")


def test_duplicate_username_conflicts(auth):
    auth.register("alice", "a@x.com", "secret1")
    with pytest.raises(Conflict):
        auth.register("alice", "other@x.com", "secret1")


def test_duplicate_email_conflicts(auth):
    auth.register("alice", "a@x.com", "secret1")
    with pytest.raises(Conflict):
        auth.register("bob", "a@x.com", "secret1")


def test_login_returns_token_for_user(auth):
    user = auth.register("alice", "a@x.com", "secret1")
    token = auth.login("a@x.com", "secret1")

    assert auth.verify_token(token) == user.id
    assert auth.user_for_token(token).username == "alice"


@pytest.mark.parametrize("email,password", [("a@x.com", "wrong"), ("nobody@x.com", "secret1")])
def test_bad_credentials_are_unauthorized(auth, email, password):
    auth.register("alice", "a@x.com", "secret1")
    with pytest.raises(Unauthorized) as exc_info:
        auth.login(email, password)
    # same message whichever check failed
    assert str(exc_info.value) == "invalid email or password"


def test_expired_token_is_unauthorized(session):
    auth = Authenticator(session, "test-secret-key", token_ttl=timedelta(seconds=-1))
    user = auth.register("alice", "a@x.com", "secret1")
    token = auth.issue_token(user)

    with pytest.raises(Unauthorized):
        auth.verify_token(token)


def test_token_signed_with_other_key_is_unauthorized(auth, session):
    user = auth.register("alice", "a@x.com", "secret1")
    forged = Authenticator(session, "other-key").issue_token(user)

    with pytest.raises(Unauthorized):
        auth.verify_token(forged)
    with pytest.raises(Unauthorized):
        auth.verify_token("garbage")
    with pytest.raises(Unauthorized):
        auth.verify_token("")


def test_default_token_lifetime_is_72_hours(auth):
    assert auth.token_ttl == timedelta(hours=72)


def test_trailing_newline_username_is_not_a_second_alice(auth, session):
    auth.register("alice", "a@x.com", "secret1")
    with pytest.raises(InvalidInput):
        auth.register("alice\n", "b@x.com", "secret1")
    assert session.query(User).count() == 1


def test_email_surrounding_whitespace_is_trimmed(auth):
    user = auth.register("alice", "  a@x.com\n", "secret1")
    assert user.email == "a@x.com"
    assert auth.authenticate(" a@x.com ", "secret1").id == user.id


@pytest.mark.parametrize("email", ["a@x.com\nb@y.com", "a@x.com\nevil", 5, None])
def test_malformed_email_is_rejected(auth, email):
    with pytest.raises(InvalidInput):
        auth.register("alice", email, "secret1")


@pytest.mark.parametrize("email,password", [(5, "secret1"), ("a@x.com", 123456), (None, None)])
def test_non_string_credentials_are_unauthorized(auth, email, password):
    auth.register("alice", "a@x.com", "secret1")
    with pytest.raises(Unauthorized):
        auth.authenticate(email, password)
