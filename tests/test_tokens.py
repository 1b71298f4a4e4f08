import uuid

import pytest
from itsdangerous import URLSafeSerializer
from itsdangerous.encoding import base64_decode, base64_encode

from finstack.auth.tokens import (
    TOKEN_SALT,
    Expired,
    InMemoryRevocationList,
    Malformed,
    Revoked,
    SignatureInvalid,
    SigningUnavailable,
    TokenIssuer,
    TokenVerifier,
)
from finstack.errors import Fatal

SECRET = "token-secret-key-0123456789abcdef0123456789"
TTL = 24 * 3600


@pytest.fixture()
def issuer(clock):
    return TokenIssuer(SECRET, ttl_seconds=TTL, clock=clock)


@pytest.fixture()
def verifier(clock):
    return TokenVerifier(SECRET, clock=clock)


def test_issue_then_verify_returns_subject(issuer, verifier):
    uid = uuid.uuid4()
    issued = issuer.issue(uid)
    assert issued.subject == uid
    assert issued.expires_at == issued.issued_at + TTL
    assert verifier.verify(issued.token) == uid


def test_tokens_differ_over_time(issuer, clock):
    uid = uuid.uuid4()
    first = issuer.issue(uid)
    clock.advance(1)
    second = issuer.issue(uid)
    assert first.token != second.token
    assert second.issued_at == first.issued_at + 1


def test_expired_token(issuer, verifier, clock):
    issued = issuer.issue(uuid.uuid4())
    clock.advance(TTL - 1)
    verifier.verify(issued.token)
    clock.advance(1)
    with pytest.raises(Expired):
        verifier.verify(issued.token)
    clock.advance(3600)
    with pytest.raises(Expired):
        verifier.verify(issued.token)


def test_any_single_bit_flip_in_signature_is_rejected(issuer, verifier):
    token = issuer.issue(uuid.uuid4()).token
    payload, sig = token.rsplit(".", 1)
    raw = bytearray(base64_decode(sig))
    for i in range(len(raw) * 8):
        tampered = bytearray(raw)
        tampered[i // 8] ^= 1 << (i % 8)
        forged = f"{payload}.{base64_encode(bytes(tampered)).decode('ascii')}"
        with pytest.raises(SignatureInvalid):
            verifier.verify(forged)


def test_tampered_payload_is_rejected(issuer, verifier):
    token = issuer.issue(uuid.uuid4()).token
    _, sig = token.rsplit(".", 1)
    other = URLSafeSerializer("another-key-0123456789abcdef0123456789", salt=TOKEN_SALT)
    foreign_payload = other.dumps({"sub": str(uuid.uuid4()), "iat": 1, "exp": 2**40}).rsplit(".", 1)[0]
    with pytest.raises(SignatureInvalid):
        verifier.verify(f"{foreign_payload}.{sig}")


def test_token_from_another_key_is_rejected(clock, verifier):
    other = TokenIssuer("rotated-key-0123456789abcdef0123456789", ttl_seconds=TTL, clock=clock)
    with pytest.raises(SignatureInvalid):
        verifier.verify(other.issue(uuid.uuid4()).token)


@pytest.mark.parametrize("token", ["", "garbage", "not.a.token", "...."])
def test_malformed_tokens(verifier, token):
    with pytest.raises(Malformed):
        verifier.verify(token)


@pytest.mark.parametrize(
    "payload",
    [
        {"sub": "not-a-uuid", "iat": 1, "exp": 2**40},
        {"sub": str(uuid.UUID(int=1))},
        {"sub": str(uuid.UUID(int=1)), "iat": "1", "exp": 2**40},
        {"sub": str(uuid.UUID(int=1)), "iat": 10, "exp": 5},
        ["not", "an", "object"],
    ],
)
def test_well_signed_but_bad_claims_are_malformed(verifier, payload):
    token = URLSafeSerializer(SECRET, salt=TOKEN_SALT).dumps(payload)
    with pytest.raises(Malformed):
        verifier.verify(token)


def test_revocation_list(issuer, clock):
    revocations = InMemoryRevocationList()
    verifier = TokenVerifier(SECRET, clock=clock, revocations=revocations)
    uid = uuid.uuid4()
    old = issuer.issue(uid)
    bystander = issuer.issue(uuid.uuid4())

    clock.advance(5)
    revocations.revoke_before(uid, int(clock()))
    fresh = issuer.issue(uid)

    with pytest.raises(Revoked):
        verifier.verify(old.token)
    assert verifier.verify(fresh.token) == uid
    assert verifier.verify(bystander.token) == bystander.subject

    # An earlier cutoff never shortens an existing one.
    revocations.revoke_before(uid, 0)
    assert revocations.is_revoked(uid, old.issued_at)


def test_missing_signing_key_is_fatal():
    with pytest.raises(SigningUnavailable):
        TokenIssuer("", ttl_seconds=TTL)
    with pytest.raises(Fatal):
        TokenVerifier("")


def test_non_positive_lifetime_rejected():
    with pytest.raises(ValueError):
        TokenIssuer(SECRET, ttl_seconds=0)
