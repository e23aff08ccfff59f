"""Unit tests for tick trigger authentication."""

from lms.web.tick_auth import bearer_token, is_authorized


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc123") == "abc123"
    assert bearer_token("bearer   abc123  ") == "abc123"
    assert bearer_token("Basic abc123") is None
    assert bearer_token("Bearer") is None
    assert bearer_token(None) is None
    assert bearer_token("") is None


def test_is_authorized_header_or_query():
    assert is_authorized("s3cret", authorization="Bearer s3cret")
    assert is_authorized("s3cret", query_key="s3cret")
    assert is_authorized("s3cret", authorization="Bearer wrong", query_key="s3cret")
    assert not is_authorized("s3cret", authorization="Bearer wrong")
    assert not is_authorized("s3cret")


def test_unset_secret_authorizes_nothing():
    assert not is_authorized(None, authorization="Bearer ", query_key="")
    assert not is_authorized("", query_key="")
    assert not is_authorized(None, query_key="anything")
