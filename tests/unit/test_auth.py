"""
Unit tests for the auth service.

Tests cover:
- Registration (validation, conflicts, index writes, partial failure)
- Login (success, uniform failures)
- Token signing, expiry and authorization
- Profile updates
"""

import pytest
import pytest_asyncio
from jose import jwt

from ritual.entity import USER, Entity, Index, User
from ritual.errors import AuthError, ConflictError, NotFoundError, ValidationError
from ritual.kv.base import StoreError
from ritual.kv.memory import InMemoryKeyValueStore
from ritual.services.auth import AuthService, PasswordHasher, TokenSigner

SECRET = "test-secret"


class FailingEmailIndexStore(InMemoryKeyValueStore):
    """Store whose email index writes fail."""

    async def put(self, key, value):
        if key.startswith("user:email:"):
            raise StoreError("simulated outage")
        await super().put(key, value)


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest_asyncio.fixture
async def store():
    """Create a connected in-memory store."""
    kv = InMemoryKeyValueStore()
    await kv.connect()
    yield kv
    await kv.close()


@pytest.fixture
def clock():
    return FakeClock(1_700_000_000)


@pytest.fixture
def signer(clock):
    return TokenSigner(SECRET, clock=clock)


@pytest.fixture
def auth(store, signer):
    return AuthService(store, PasswordHasher(), signer)


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    def test_hash_is_not_plaintext(self):
        hasher = PasswordHasher()
        hashed = hasher.hash("longpass1")

        assert hashed != "longpass1"
        assert hasher.verify("longpass1", hashed)
        assert not hasher.verify("wrongpass", hashed)

    def test_verify_rejects_missing_or_unknown_hash(self):
        hasher = PasswordHasher()

        assert not hasher.verify("longpass1", None)
        assert not hasher.verify("longpass1", "not-a-hash")


class TestTokenSigner:
    """Tests for TokenSigner."""

    def test_claims(self, signer, clock):
        token = signer.issue(User(id="u1", name="Ann", email="ann@x.com"))
        claims = jwt.get_unverified_claims(token)

        assert claims["sub"] == "u1"
        assert claims["email"] == "ann@x.com"
        assert claims["exp"] == clock.now + 7 * 24 * 60 * 60

    def test_verify_round_trip(self, signer):
        token = signer.issue(User(id="u1", name="Ann", email="ann@x.com"))
        assert signer.verify(token)["sub"] == "u1"

    def test_expired_token_rejected(self, signer, clock):
        token = signer.issue(User(id="u1", name="Ann", email="ann@x.com"))
        clock.now += 7 * 24 * 60 * 60 + 1

        with pytest.raises(AuthError):
            signer.verify(token)

    def test_wrong_secret_rejected(self, clock):
        token = TokenSigner("other", clock=clock).issue(User(id="u1", name="A", email="a@x"))

        with pytest.raises(AuthError):
            TokenSigner(SECRET, clock=clock).verify(token)

    def test_malformed_token_rejected(self, signer):
        with pytest.raises(AuthError):
            signer.verify("not.a.token")

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            TokenSigner("")


class TestRegister:
    """Tests for AuthService.register."""

    @pytest.mark.asyncio
    async def test_register_creates_user_and_indexes(self, auth, store):
        user = await auth.register("Ann", "ann@x.com", "longpass1")

        assert user.name == "Ann"
        assert user.password != "longpass1"
        assert await Entity(store, USER, user.id).exists()
        assert await store.get("user:email:ann@x.com") == {"id": user.id}
        assert await Index(store, "users").list() == [user.id]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,email,password",
        [(None, "a@x.com", "pw"), ("A", None, "pw"), ("A", "a@x.com", None), ("", "a@x.com", "pw")],
    )
    async def test_missing_fields(self, auth, name, email, password):
        with pytest.raises(ValidationError):
            await auth.register(name, email, password)

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, auth):
        """Second registration fails even with different name and password."""
        await auth.register("Ann", "ann@x.com", "longpass1")

        with pytest.raises(ConflictError):
            await auth.register("Other", "ann@x.com", "different")

    @pytest.mark.asyncio
    async def test_index_failure_leaves_orphan_and_propagates(self, signer):
        store = FailingEmailIndexStore()
        await store.connect()
        auth = AuthService(store, PasswordHasher(), signer)

        with pytest.raises(StoreError):
            await auth.register("Ann", "ann@x.com", "longpass1")

        # The primary record was written first and is not rolled back
        user_ids = await Index(store, "users").list()
        assert len(user_ids) == 1
        assert await Entity(store, USER, user_ids[0]).exists()
        assert await store.get("user:email:ann@x.com") is None


class TestLogin:
    """Tests for AuthService.login."""

    @pytest.mark.asyncio
    async def test_login_returns_token_for_user(self, auth):
        registered = await auth.register("Ann", "ann@x.com", "longpass1")

        user, token = await auth.login("ann@x.com", "longpass1")

        assert user.id == registered.id
        assert auth.authorize(token) == registered.id

    @pytest.mark.asyncio
    async def test_unknown_email_and_wrong_password_look_alike(self, auth):
        await auth.register("Ann", "ann@x.com", "longpass1")

        with pytest.raises(AuthError) as unknown:
            await auth.login("bob@x.com", "longpass1")
        with pytest.raises(AuthError) as wrong:
            await auth.login("ann@x.com", "wrongpass")

        assert unknown.value.message == wrong.value.message == "Invalid credentials"
        assert unknown.value.status_code == wrong.value.status_code == 404

    @pytest.mark.asyncio
    async def test_dangling_index_is_invalid_credentials(self, auth, store):
        await store.put("user:email:ghost@x.com", {"id": "missing"})

        with pytest.raises(AuthError) as exc:
            await auth.login("ghost@x.com", "whatever")
        assert exc.value.message == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_missing_fields(self, auth):
        with pytest.raises(ValidationError):
            await auth.login("ann@x.com", None)


class TestAuthorize:
    """Tests for AuthService.authorize."""

    def test_missing_token(self, auth):
        with pytest.raises(AuthError) as exc:
            auth.authorize(None)
        assert exc.value.status_code == 401

    def test_token_without_subject(self, auth, clock):
        token = jwt.encode({"email": "a@x.com", "exp": clock.now + 60}, SECRET, algorithm="HS256")

        with pytest.raises(AuthError):
            auth.authorize(token)


class TestUpdateProfile:
    """Tests for AuthService.update_profile."""

    @pytest.mark.asyncio
    async def test_rename(self, auth):
        user = await auth.register("Ann", "ann@x.com", "longpass1")

        updated = await auth.update_profile(user.id, "Annie")

        assert updated.name == "Annie"
        assert updated.email == "ann@x.com"
        assert (await auth.get_user(user.id)).name == "Annie"

    @pytest.mark.asyncio
    async def test_name_required(self, auth):
        user = await auth.register("Ann", "ann@x.com", "longpass1")

        with pytest.raises(ValidationError):
            await auth.update_profile(user.id, "")

    @pytest.mark.asyncio
    async def test_missing_user(self, auth):
        with pytest.raises(NotFoundError):
            await auth.update_profile("ghost", "Name")
