import hashlib
import hmac

from src.domain.signatures import SIGNATURE_PREFIX, compute_signature, verify_signature


def _expected(secret: str, body: bytes) -> str:
    return "sha1=" + hmac.new(secret.encode(), body, hashlib.sha1).hexdigest()


def test_compute_signature_matches_hmac_sha1_hex():
    body = b'{"type":"pass.created","data":{"passSerialNumber":"abc"}}'
    signature = compute_signature("s3cret", body)
    assert signature.startswith(SIGNATURE_PREFIX)
    assert signature == _expected("s3cret", body)


def test_verify_signature_accepts_exact_match():
    body = b'{"type":"pass.updated"}'
    assert verify_signature("s3cret", body, _expected("s3cret", body)) is True


def test_verify_signature_rejects_mutations():
    body = b'{"type":"pass.updated"}'
    good = _expected("s3cret", body)
    assert verify_signature("s3cret", body, good[:-1] + ("0" if good[-1] != "0" else "1")) is False
    assert verify_signature("s3cret", body, good + " ") is False
    assert verify_signature("s3cret", body, good.removeprefix("sha1=")) is False
    assert verify_signature("s3cret", body, good.upper()) is False
    assert verify_signature("other", body, good) is False
    # Whitespace differences in the body change the digest.
    assert verify_signature("s3cret", b'{"type": "pass.updated"}', good) is False


def test_verify_signature_rejects_missing_inputs():
    body = b"{}"
    assert verify_signature("s3cret", body, None) is False
    assert verify_signature("s3cret", body, "") is False
    assert verify_signature("", body, _expected("x", body)) is False
