from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import pytest
from jose import jwt

from conftest import TEST_SECRET, token_from
from waitlist.auth.links import SignInLinkMinter
from waitlist.errors import InvalidSignInLink


@pytest.mark.unit
class TestSignInLinkMinter:
    def test_mint_appends_token(self, link_minter):
        link = link_minter.mint("new@x.com", "https://june.money/verify")

        parts = urlsplit(link)
        assert (parts.scheme, parts.netloc, parts.path) == ("https", "june.money", "/verify")
        assert link_minter.verify(token_from(link)) == "new@x.com"

    def test_mint_keeps_existing_query(self, link_minter):
        link = link_minter.mint("new@x.com", "http://localhost:5173/verify?src=ad&ref=")

        query = parse_qs(urlsplit(link).query, keep_blank_values=True)
        assert query["src"] == ["ad"]
        assert query["ref"] == [""]
        assert "token" in query

    def test_expired_token(self):
        minter = SignInLinkMinter(secret_key=TEST_SECRET, ttl=timedelta(minutes=-1))
        token = minter.create_token("new@x.com")

        with pytest.raises(InvalidSignInLink):
            minter.verify(token)

    def test_token_signed_with_other_secret(self, link_minter):
        other = SignInLinkMinter(secret_key="some-other-secret-key-with-32-characters")

        with pytest.raises(InvalidSignInLink):
            link_minter.verify(other.create_token("new@x.com"))

    def test_wrong_token_type(self, link_minter):
        token = jwt.encode({"sub": "new@x.com", "type": "access"}, TEST_SECRET, algorithm="HS256")

        with pytest.raises(InvalidSignInLink):
            link_minter.verify(token)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_tokens(self, link_minter, token):
        with pytest.raises(InvalidSignInLink):
            link_minter.verify(token)
