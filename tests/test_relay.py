# tests/test_relay.py

import pytest
import requests

from bonfire_node.api import RelayClient, RelayError
from bonfire_node.encoding import to_b64


def _register(test_client, email, keypair, username=None):
    r = test_client.post(
        "/users",
        json={"email": email, "public_key": keypair.public_key_b64, "username": username},
    )
    assert r.status_code == 201, r.text
    return r.json()


class TestHealth:
    def test_healthy(self, test_client):
        r = test_client.get("/health")
        assert r.status_code == 200
        assert r.json()["checks"]["database"] is True


class TestDirectoryRoutes:
    def test_register_and_get(self, test_client, alice):
        user = _register(test_client, "alice@example.com", alice)
        assert user["username"] == "alice"
        assert user["public_key"] == alice.public_key_b64

        r = test_client.get(f"/users/{user['id']}")
        assert r.status_code == 200
        assert r.json() == user

    def test_explicit_username(self, test_client, alice):
        user = _register(test_client, "a@example.com", alice, username="Alice")
        assert user["username"] == "Alice"

    def test_duplicate_email(self, test_client, alice, bob):
        _register(test_client, "alice@example.com", alice)
        r = test_client.post(
            "/users", json={"email": "alice@example.com", "public_key": bob.public_key_b64}
        )
        assert r.status_code == 409

    @pytest.mark.parametrize("bad_key", ["tooshort", to_b64(b"\x01" * 31), "!!!!"])
    def test_invalid_public_key(self, test_client, bad_key):
        r = test_client.post("/users", json={"email": "x@example.com", "public_key": bad_key})
        assert r.status_code == 422

    def test_unknown_user(self, test_client):
        assert test_client.get("/users/nope").status_code == 404

    def test_list_users(self, test_client, alice, bob):
        _register(test_client, "bob@example.com", bob)
        _register(test_client, "alice@example.com", alice)
        names = [u["username"] for u in test_client.get("/users").json()]
        assert names == ["alice", "bob"]

    def test_list_users_excluding_caller(self, test_client, alice, bob):
        a = _register(test_client, "alice@example.com", alice)
        _register(test_client, "bob@example.com", bob)
        others = test_client.get("/users", params={"exclude": a["id"]}).json()
        assert [u["username"] for u in others] == ["bob"]


class TestMessageRoutes:
    def test_insert_and_list_both_directions(self, test_client, cipher, alice, bob, carol):
        a = _register(test_client, "alice@example.com", alice)
        b = _register(test_client, "bob@example.com", bob)
        c = _register(test_client, "carol@example.com", carol)

        def post(sender, receiver, text, sk, pk):
            ct = cipher.encrypt_text(text, pk, sk)
            r = test_client.post(
                "/messages",
                json={"sender_id": sender["id"], "receiver_id": receiver["id"], "ciphertext": ct},
            )
            assert r.status_code == 201, r.text
            return r.json()

        m1 = post(a, b, "hi bob", alice.private_key, bob.public_key)
        m2 = post(b, a, "hi alice", bob.private_key, alice.public_key)
        post(a, c, "hi carol", alice.private_key, carol.public_key)

        rows = test_client.get("/messages", params={"a": a["id"], "b": b["id"]}).json()
        assert [r["id"] for r in rows] == [m1["id"], m2["id"]]

        # same rows regardless of argument order
        rows_rev = test_client.get("/messages", params={"a": b["id"], "b": a["id"]}).json()
        assert rows_rev == rows

        after = test_client.get(
            "/messages", params={"a": a["id"], "b": b["id"], "after": m1["id"]}
        ).json()
        assert [r["id"] for r in after] == [m2["id"]]

    def test_rejects_non_base64(self, test_client, alice, bob):
        a = _register(test_client, "alice@example.com", alice)
        b = _register(test_client, "bob@example.com", bob)
        r = test_client.post(
            "/messages",
            json={"sender_id": a["id"], "receiver_id": b["id"], "ciphertext": "%%%"},
        )
        assert r.status_code == 422

    def test_rejects_too_short(self, test_client, alice, bob):
        a = _register(test_client, "alice@example.com", alice)
        b = _register(test_client, "bob@example.com", bob)
        r = test_client.post(
            "/messages",
            json={"sender_id": a["id"], "receiver_id": b["id"], "ciphertext": to_b64(b"\x00" * 39)},
        )
        assert r.status_code == 422

    def test_rejects_unknown_user(self, test_client, alice):
        a = _register(test_client, "alice@example.com", alice)
        r = test_client.post(
            "/messages",
            json={"sender_id": a["id"], "receiver_id": "ghost", "ciphertext": to_b64(b"\x00" * 40)},
        )
        assert r.status_code == 404


class _FlakySession:
    def __init__(self, failures, response, exc=requests.exceptions.ConnectionError):
        self.failures = failures
        self.response = response
        self.exc = exc
        self.calls = 0

    def request(self, method, url, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc("down")
        return self.response


class _LostReplySession:
    """Delivers POSTs to the app, then loses the reply."""

    def __init__(self, client):
        self.client = client
        self.posts = 0

    def request(self, method, url, **kwargs):
        r = self.client.request(method, url, **kwargs)
        if method == "POST":
            self.posts += 1
            raise requests.exceptions.ReadTimeout("reply lost")
        return r


class _RecordingSession:
    def __init__(self):
        self.kwargs = None

    def request(self, method, url, **kwargs):
        self.kwargs = kwargs
        return _Response(200, [])


class _RecordingRequestsSession(requests.Session):
    def __init__(self):
        super().__init__()
        self.kwargs = None

    def request(self, method, url, **kwargs):
        self.kwargs = kwargs
        return _Response(200, [])


class _Response:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    def json(self):
        return self._payload


class TestRelayClient:
    def test_round_trip_through_app(self, relay, alice):
        user = relay.register_user("alice@example.com", alice.public_key_b64)
        assert relay.get_user(user["id"]) == user
        assert relay.list_users() == [user]

    def test_http_error_not_retried(self, relay):
        with pytest.raises(RelayError) as excinfo:
            relay.get_user("nope")
        assert excinfo.value.status_code == 404

    def test_retries_connection_errors(self, monkeypatch):
        monkeypatch.setattr("bonfire_node.api.time.sleep", lambda s: None)
        session = _FlakySession(2, _Response(200, []))
        client = RelayClient(base_url="http://relay", session=session, max_retries=3)

        assert client.list_users() == []
        assert session.calls == 3

    def test_gives_up_after_max_retries(self, monkeypatch):
        monkeypatch.setattr("bonfire_node.api.time.sleep", lambda s: None)
        session = _FlakySession(10, _Response(200, []))
        client = RelayClient(base_url="http://relay", session=session, max_retries=3)

        with pytest.raises(RelayError, match="after 3 attempts"):
            client.list_users()
        assert session.calls == 3

    def test_list_users_excluding_caller(self, relay, alice, bob):
        a = relay.register_user("alice@example.com", alice.public_key_b64)
        b = relay.register_user("bob@example.com", bob.public_key_b64)
        assert relay.list_users(exclude_id=a["id"]) == [b]
        assert relay.list_users() == [a, b]

    def test_post_not_retried_after_read_timeout(self, test_client, cipher, alice, bob, monkeypatch):
        monkeypatch.setattr("bonfire_node.api.time.sleep", lambda s: None)
        a = _register(test_client, "alice@example.com", alice)
        b = _register(test_client, "bob@example.com", bob)
        session = _LostReplySession(test_client)
        client = RelayClient(base_url="http://testserver", session=session, max_retries=3)

        ct = cipher.encrypt_text("hi bob", bob.public_key, alice.private_key)
        with pytest.raises(RelayError, match="not retried"):
            client.insert_message(a["id"], b["id"], ct)

        assert session.posts == 1
        rows = test_client.get("/messages", params={"a": a["id"], "b": b["id"]}).json()
        assert len(rows) == 1

    def test_get_retried_after_read_timeout(self, monkeypatch):
        monkeypatch.setattr("bonfire_node.api.time.sleep", lambda s: None)
        session = _FlakySession(1, _Response(200, []), exc=requests.exceptions.ReadTimeout)
        client = RelayClient(base_url="http://relay", session=session, max_retries=3)

        assert client.list_users() == []
        assert session.calls == 2

    def test_timeout_only_passed_to_requests_session(self):
        plain = _RecordingSession()
        RelayClient(base_url="http://relay", session=plain, timeout=7).list_users()
        assert "timeout" not in plain.kwargs

        real = _RecordingRequestsSession()
        RelayClient(base_url="http://relay", session=real, timeout=7).list_users()
        assert real.kwargs["timeout"] == 7
