"""Tests for the commitment/nullifier scheme"""

import pytest

from zk.commitments import (
    VoterCredential,
    compute_commitment,
    compute_nullifier,
    generate_secret,
)
from zk.poseidon import FIELD_PRIME, poseidon_hash


def test_commitment_is_single_input_hash():
    assert compute_commitment(12345) == poseidon_hash(12345)


def test_nullifier_is_secret_proposal_hash():
    assert compute_nullifier(12345, 7) == poseidon_hash(12345, 7)


def test_nullifiers_differ_across_proposals():
    secret = 98765
    nullifiers = {compute_nullifier(secret, pid) for pid in range(1, 6)}
    assert len(nullifiers) == 5
    assert compute_commitment(secret) not in nullifiers


def test_accepts_string_secrets():
    assert compute_commitment("0x3039") == compute_commitment(12345)
    assert compute_nullifier("12345", "7") == compute_nullifier(12345, 7)


@pytest.mark.parametrize("secret", [0, -5, FIELD_PRIME, "not-a-number", None])
def test_rejects_malformed_secrets(secret):
    with pytest.raises(ValueError):
        compute_commitment(secret)
    with pytest.raises(ValueError):
        compute_nullifier(secret, 1)


def test_rejects_out_of_field_proposal_id():
    with pytest.raises(ValueError):
        compute_nullifier(1, FIELD_PRIME)


def test_generated_secret_in_range():
    for _ in range(20):
        secret = generate_secret()
        assert 0 < secret < FIELD_PRIME


class TestVoterCredential:

    def test_from_secret(self):
        credential = VoterCredential.from_secret(4242)
        assert credential.commitment == compute_commitment(4242)
        assert credential.nullifier_for(3) == compute_nullifier(4242, 3)

    def test_generate_is_random(self):
        assert VoterCredential.generate().secret != VoterCredential.generate().secret

    def test_repr_hides_secret(self):
        credential = VoterCredential.generate()
        assert str(credential.secret) not in repr(credential)
        assert str(credential.commitment) in repr(credential)

    def test_rejects_zero_secret(self):
        with pytest.raises(ValueError):
            VoterCredential.from_secret(0)
