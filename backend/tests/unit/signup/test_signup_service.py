from datetime import datetime, timedelta

import pytest

from conftest import RecordingEmailService, ScriptedRng, seed_user, token_from
from waitlist.auth.links import SignInLinkMinter
from waitlist.errors import (
    AlreadyRegistered,
    CodeGenerationExhausted,
    InvalidReferralCode,
    InvalidSignInLink,
    MissingInput,
)
from waitlist.signup.service import SignupService, mask_email
from waitlist.storage.memory import InMemoryDocumentStore
from waitlist.storage.store import PENDING_REFERRALS, REFERRAL_CODES, USERS


@pytest.mark.unit
class TestRequestSignIn:
    @pytest.mark.asyncio
    async def test_sends_link_to_verify_page(self, signup_service, email_service):
        result = await signup_service.request_sign_in("  New@X.com ")

        assert result.email == "new@x.com"
        assert result.email_sent is True
        assert result.referral_applied is False

        link = email_service.sign_in_links["new@x.com"]
        assert link.startswith("https://june.money/verify?token=")
        assert email_service.sent[0].to == "new@x.com"
        assert email_service.sent[0].subject.startswith("Sign in to JUNE")

    @pytest.mark.asyncio
    async def test_custom_return_url(self, signup_service, email_service):
        await signup_service.request_sign_in("new@x.com", return_url="http://localhost:5173/verify?src=ad")

        link = email_service.sign_in_links["new@x.com"]
        assert link.startswith("http://localhost:5173/verify?src=ad&token=")

    @pytest.mark.asyncio
    async def test_missing_email(self, signup_service, email_service):
        with pytest.raises(MissingInput):
            await signup_service.request_sign_in("   ")
        assert email_service.sent == []

    @pytest.mark.asyncio
    async def test_already_registered(self, signup_service, store, email_service):
        seed_user(store, "r@x.com", "JUNE-AB12C3")

        with pytest.raises(AlreadyRegistered):
            await signup_service.request_sign_in("R@x.com")
        assert email_service.sent == []

    @pytest.mark.asyncio
    async def test_invalid_referral_code_rejects_signup(self, signup_service, store, email_service):
        with pytest.raises(InvalidReferralCode):
            await signup_service.request_sign_in("new@x.com", referral_code="JUNE-NOPE00")

        assert store.get(PENDING_REFERRALS, "new@x.com") is None
        assert email_service.sent == []

    @pytest.mark.asyncio
    async def test_email_failure_does_not_fail_signup(self, store, link_minter):
        failing = RecordingEmailService(succeed=False)
        service = SignupService(store=store, email_service=failing, link_minter=link_minter)
        seed_user(store, "r@x.com", "JUNE-AB12C3")

        result = await service.request_sign_in("new@x.com", referral_code="JUNE-AB12C3")

        assert result.email_sent is False
        assert result.referred_by == "r@x.com"
        assert store.get(PENDING_REFERRALS, "new@x.com") is not None


@pytest.mark.unit
class TestVerify:
    @pytest.mark.asyncio
    async def test_referral_scenario(self, signup_service, store, email_service):
        seed_user(store, "r@x.com", "JUNE-AB12C3")

        signup = await signup_service.request_sign_in("new@x.com", referral_code="JUNE-AB12C3")
        assert signup.referred_by == "r@x.com"
        assert store.get(PENDING_REFERRALS, "new@x.com")["referred_by"] == "r@x.com"

        token = token_from(email_service.sign_in_links["new@x.com"])
        result = await signup_service.verify(token)

        assert result.created is True
        assert result.referred_by == "r@x.com"
        assert result.email_sent is True

        user = store.get(USERS, "new@x.com")
        assert user["referral_count"] == 0
        assert user["referred_by"] == "r@x.com"
        assert signup_service.code_generator().is_well_formed(user["referral_code"])
        assert user["referral_code"] != "JUNE-AB12C3"

        assert store.get(USERS, "r@x.com")["referral_count"] == 1
        assert store.get(PENDING_REFERRALS, "new@x.com") is None
        assert store.get(REFERRAL_CODES, user["referral_code"])["email"] == "new@x.com"

        welcome = email_service.sent[-1]
        assert welcome.to == "new@x.com"
        assert user["referral_code"] in welcome.html

    @pytest.mark.asyncio
    async def test_without_referral(self, signup_service, store):
        result = await signup_service.verify_email("solo@x.com")

        assert result.created is True
        assert result.referred_by is None
        assert store.get(USERS, "solo@x.com")["referred_by"] is None

    @pytest.mark.asyncio
    async def test_verifying_twice_is_idempotent(self, signup_service, store, email_service):
        seed_user(store, "r@x.com", "JUNE-AB12C3")
        await signup_service.request_sign_in("dup@x.com", referral_code="JUNE-AB12C3")

        first = await signup_service.verify_email("dup@x.com")
        second = await signup_service.verify_email("DUP@x.com")

        assert first.created is True
        assert second.created is False
        assert second.user["referral_code"] == first.user["referral_code"]
        assert second.referred_by == "r@x.com"

        assert store.count(USERS) == 2
        assert store.count(REFERRAL_CODES) == 1
        assert store.get(USERS, "r@x.com")["referral_count"] == 1
        assert [m.subject for m in email_service.sent].count("Welcome to JUNE 🌞") == 1

    @pytest.mark.asyncio
    async def test_welcome_email_failure_does_not_fail_verification(self, store, link_minter):
        service = SignupService(
            store=store,
            email_service=RecordingEmailService(succeed=False),
            link_minter=link_minter,
        )

        result = await service.verify_email("new@x.com")

        assert result.created is True
        assert result.email_sent is False
        assert store.get(USERS, "new@x.com") is not None

    @pytest.mark.asyncio
    async def test_bad_tokens(self, signup_service, store):
        with pytest.raises(MissingInput):
            await signup_service.verify(None)

        with pytest.raises(InvalidSignInLink):
            await signup_service.verify("not-a-jwt")

        other_secret = SignInLinkMinter(secret_key="another-secret-key-of-at-least-32-chars")
        with pytest.raises(InvalidSignInLink):
            await signup_service.verify(other_secret.create_token("new@x.com"))

        assert store.count(USERS) == 0

    @pytest.mark.asyncio
    async def test_code_exhaustion_rolls_back_everything(self, store, email_service, link_minter):
        seed_user(store, "r@x.com", "JUNE-AAAAAA")
        service = SignupService(
            store=store,
            email_service=email_service,
            link_minter=link_minter,
            max_code_attempts=2,
            rng=ScriptedRng("A" * 100),
        )
        store.set(PENDING_REFERRALS, "new@x.com", {"referred_by": "r@x.com", "referral_code": "JUNE-AAAAAA"})

        with pytest.raises(CodeGenerationExhausted):
            await service.verify_email("new@x.com")

        assert store.get(USERS, "new@x.com") is None
        assert store.get(PENDING_REFERRALS, "new@x.com") is not None
        assert store.get(USERS, "r@x.com")["referral_count"] == 0
        assert email_service.sent == []


class RacingStore(InMemoryDocumentStore):
    """Pretends the user is not there yet on the first lookup, as a racing request would see it."""

    def __init__(self):
        super().__init__()
        self.hide_users_once = True

    def get(self, collection, key):
        if collection == USERS and self.hide_users_once:
            self.hide_users_once = False
            return None
        return super().get(collection, key)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_losing_a_verification_race_applies_nothing(email_service, link_minter):
    store = RacingStore()
    seed_user(store, "r@x.com", "JUNE-AB12C3", referral_count=1)
    seed_user(store, "new@x.com", "JUNE-N00000", referred_by="r@x.com")
    store.set(PENDING_REFERRALS, "new@x.com", {"referred_by": "r@x.com", "referral_code": "JUNE-AB12C3"})
    service = SignupService(store=store, email_service=email_service, link_minter=link_minter)

    result = await service.verify_email("new@x.com")

    assert result.created is False
    assert result.user["referral_code"] == "JUNE-N00000"
    assert store.get(USERS, "r@x.com")["referral_count"] == 1
    assert store.count(REFERRAL_CODES) == 0
    assert email_service.sent == []


@pytest.mark.unit
class TestLookups:
    def test_leaderboard(self, signup_service, store):
        start = datetime(2025, 6, 1)
        seed_user(store, "alice@x.com", "JUNE-000001", referral_count=3, created_at=start)
        seed_user(store, "bob@x.com", "JUNE-000002", referral_count=7, created_at=start + timedelta(hours=1))
        seed_user(store, "carol@x.com", "JUNE-000003", referral_count=3, created_at=start + timedelta(hours=2))

        entries = signup_service.leaderboard(2)

        assert [(e.rank, e.email, e.referral_count) for e in entries] == [
            (1, "bo***@x.com", 7),
            (2, "al***@x.com", 3),
        ]
        assert len(signup_service.leaderboard()) == 3
        assert signup_service.member_count() == 3

    def test_validate_code(self, signup_service, store):
        seed_user(store, "r@x.com", "JUNE-AB12C3")

        assert signup_service.validate_code("june-ab12c3") is True
        assert signup_service.validate_code("JUNE-000000") is False
        assert signup_service.validate_code("") is False

    def test_get_user(self, signup_service, store):
        seed_user(store, "r@x.com", "JUNE-AB12C3")

        assert signup_service.get_user(" R@X.COM ")["referral_code"] == "JUNE-AB12C3"
        assert signup_service.get_user("none@x.com") is None


def test_mask_email():
    assert mask_email("jane.doe@x.com") == "ja***@x.com"
    assert mask_email("j@x.com") == "j***@x.com"
    assert mask_email("broken") == "br***"
