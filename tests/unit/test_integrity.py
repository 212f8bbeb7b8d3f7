"""Unit tests for canonical result hashing"""

import hashlib
from creditchain_gateway.domain.integrity import (
    canonical_json,
    data_integrity_hash,
    verify_data_integrity,
    identity_hash,
)


def test_canonical_json_is_key_order_independent():
    first = {"b": 1, "a": {"y": [1, 2], "x": None}}
    second = {"a": {"x": None, "y": [1, 2]}, "b": 1}

    assert canonical_json(first) == canonical_json(second)
    assert canonical_json(first) == '{"a":{"x":null,"y":[1,2]},"b":1}'


def test_data_integrity_hash_is_sha256_of_canonical_form():
    document = {"creditScore": 712, "userId": "u1"}
    expected = hashlib.sha256(b'{"creditScore":712,"userId":"u1"}').hexdigest()

    assert data_integrity_hash(document) == expected
    assert len(data_integrity_hash(document)) == 64


def test_any_change_alters_the_hash():
    document = {"creditScore": 712, "riskLevel": "low"}
    tampered = {"creditScore": 713, "riskLevel": "low"}

    assert data_integrity_hash(document) != data_integrity_hash(tampered)


def test_verify_data_integrity():
    document = {"creditScore": 712, "anomalyMetrics": {"anomalyRate": 4.0}}
    digest = data_integrity_hash(document)

    assert verify_data_integrity(document, digest) is True
    assert verify_data_integrity({**document, "creditScore": 300}, digest) is False


def test_identity_hash_is_salted():
    salted = identity_hash("ABCDE1234F", "salt-a")

    assert salted == hashlib.sha256(b"salt-a:ABCDE1234F").hexdigest()
    assert salted != identity_hash("ABCDE1234F", "salt-b")
    assert salted == identity_hash("ABCDE1234F", "salt-a")
