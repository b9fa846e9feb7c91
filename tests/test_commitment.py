"""Tests for hash commitments."""

import hashlib

import pytest

from hedgeswap.crypto.commitment import HashCommitment
from hedgeswap.errors import ErrorKind, InvalidSecretError

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
EMPTY_KECCAK256 = "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


class TestDigest:
    def test_sha256_is_default(self) -> None:
        commitment = HashCommitment()
        assert commitment.algorithm == "sha256"
        assert commitment.digest(b"").hex() == EMPTY_SHA256

    def test_keccak256_matches_ethereum(self) -> None:
        commitment = HashCommitment("keccak256")
        assert commitment.digest(b"").hex() == EMPTY_KECCAK256

    def test_unknown_algorithm_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown hash algorithm"):
            HashCommitment("md5")


class TestVerify:
    def test_matching_secret(self) -> None:
        key = hashlib.sha256(b"s3cret").digest()
        assert HashCommitment().verify(b"s3cret", key)

    def test_wrong_secret(self) -> None:
        key = hashlib.sha256(b"s3cret").digest()
        assert not HashCommitment().verify(b"guess", key)

    def test_other_algorithm_does_not_match(self) -> None:
        key = hashlib.sha256(b"s3cret").digest()
        assert not HashCommitment("keccak256").verify(b"s3cret", key)

    def test_require_raises_invalid_secret(self) -> None:
        key = hashlib.sha256(b"s3cret").digest()
        with pytest.raises(InvalidSecretError) as exc:
            HashCommitment().require(b"guess", key)
        assert exc.value.kind == ErrorKind.INVALID_SECRET
        assert exc.value.commitment_key == key

    def test_require_accepts_match(self) -> None:
        key = hashlib.sha256(b"s3cret").digest()
        HashCommitment().require(b"s3cret", key)
