"""
Pytest configuration for todo_api. In-memory SQLite, an in-process JWKS endpoint and
small fakes for the directory and authorizer, so no test touches the network.
"""
import os

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["TODO_DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("AUDIENCE", "todo-test-audience")

import time

import httpx
import jwt
import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key
from fastapi.testclient import TestClient

from todo_api.auth import TokenVerifier
from todo_api.database import TodoStore
from todo_api.directory import UserRecord
from todo_api.errors import NotFound
from todo_api.keys import SigningKeyCache
from todo_api.main import create_app

AUDIENCE = "todo-test-audience"
JWKS_URL = "https://issuer.test/keys"
KID = "test-key"


def _int_to_b64url(value: int) -> str:
    """Encode a positive int as base64url (JWK n/e)."""
    length = (value.bit_length() + 7) // 8
    s = jwt.utils.base64url_encode(value.to_bytes(length, "big"))
    return s.decode("utf-8") if isinstance(s, bytes) else s


def _jwk_for(key, kid: str) -> dict:
    pub = key.public_key().public_numbers()
    return {
        "kty": "RSA",
        "kid": kid,
        "alg": "RS256",
        "use": "sig",
        "n": _int_to_b64url(pub.n),
        "e": _int_to_b64url(pub.e),
    }


class JwksServer:
    """Serves a JWKS document through httpx.MockTransport and counts fetches."""

    def __init__(self, jwks: dict):
        self.jwks = jwks
        self.fetches = 0
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.fetches += 1
        if self.fail:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json=self.jwks)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


class FakeDirectory:
    """Directory stand-in: identity -> user id, user objects, and recorded ownership calls."""

    def __init__(self):
        self.identities: dict[str, str] = {}
        self.users: dict[str, UserRecord] = {}
        self.owners: dict[str, str] = {}
        self.calls: list[tuple] = []

    def add_user(self, user_id: str, name: str = "", identity: str | None = None, **properties):
        self.users[user_id] = UserRecord(id=user_id, display_name=name, properties=properties)
        if identity is not None:
            self.identities[identity] = user_id

    def user_from_identity(self, identity: str) -> UserRecord:
        self.calls.append(("user_from_identity", identity))
        user_id = self.identities.get(identity)
        if user_id is None:
            raise NotFound("User not found")
        return self.users[user_id]

    def get_user(self, user_id: str) -> UserRecord:
        self.calls.append(("get_user", user_id))
        if user_id not in self.users:
            raise NotFound("User not found")
        return self.users[user_id]

    def record_ownership(self, todo_id: str, owner_id: str) -> None:
        self.calls.append(("record_ownership", todo_id, owner_id))
        self.owners[todo_id] = owner_id

    def remove_ownership(self, todo_id: str) -> None:
        self.calls.append(("remove_ownership", todo_id))
        self.owners.pop(todo_id, None)


class FakeAuthorizer:
    """Authorizer stand-in. Allows everything unless a path is listed in `deny`."""

    def __init__(self):
        self.deny: set[str] = set()
        self.error: Exception | None = None
        self.calls: list[tuple] = []

    def is_allowed(self, identity, path: str, resource: dict | None = None) -> bool:
        self.calls.append((identity.subject, path, dict(resource or {})))
        if self.error is not None:
            raise self.error
        return path not in self.deny


@pytest.fixture(scope="session")
def signing_key():
    return generate_private_key(65537, 2048, default_backend())


@pytest.fixture(scope="session")
def other_key():
    return generate_private_key(65537, 2048, default_backend())


@pytest.fixture
def jwks_server(signing_key):
    return JwksServer({"keys": [_jwk_for(signing_key, KID)]})


@pytest.fixture
def jwk_for():
    return _jwk_for


@pytest.fixture
def make_token(signing_key):
    """Build an access token; keyword overrides replace claims (None removes one)."""

    def _make(sub: str | None = "alice", *, key=None, kid: str = KID, **overrides) -> str:
        now = int(time.time())
        payload = {
            "sub": sub,
            "aud": AUDIENCE,
            "iss": "https://issuer.test",
            "exp": now + 3600,
            "iat": now,
        }
        payload.update(overrides)
        payload = {k: v for k, v in payload.items() if v is not None}
        headers = {"kid": kid} if kid is not None else None
        return jwt.encode(payload, key or signing_key, algorithm="RS256", headers=headers)

    return _make


@pytest.fixture
def key_cache(jwks_server):
    cache = SigningKeyCache(JWKS_URL, http_client=jwks_server.client(), lifespan=300)
    yield cache
    cache._http.close()


@pytest.fixture
def verifier(key_cache):
    return TokenVerifier(key_cache, audience=AUDIENCE)


@pytest.fixture
def store():
    s = TodoStore.from_url("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def directory():
    d = FakeDirectory()
    d.add_user("u1", name="Alice", identity="alice", email="alice@example.com")
    d.add_user("u2", name="Bob", identity="bob")
    return d


@pytest.fixture
def authorizer():
    return FakeAuthorizer()


@pytest.fixture
def app(store, directory, authorizer, verifier):
    return create_app(store=store, directory=directory, authorizer=authorizer, verifier=verifier)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers(make_token):
    def _headers(sub: str = "alice", **overrides) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub, **overrides)}"}

    return _headers
