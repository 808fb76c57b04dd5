import pytest
from solders.pubkey import Pubkey

from boring_vault import derivation
from boring_vault.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    BORING_QUEUE_PROGRAM_ID,
    BORING_VAULT_PROGRAM_ID,
    TOKEN_2022_PROGRAM_ID,
)
from boring_vault.derivation import AddressDeriver, QueueSeeds, derive_address, u64_le
from boring_vault.errors import DerivationError

VAULT_PROGRAM = Pubkey.from_string(BORING_VAULT_PROGRAM_ID)
QUEUE_PROGRAM = Pubkey.from_string(BORING_QUEUE_PROGRAM_ID)


def test_derive_is_deterministic():
    seeds = [b"boring-vault-state", u64_le(1)]
    first = derive_address(VAULT_PROGRAM, seeds)
    second = derive_address(VAULT_PROGRAM, seeds)
    assert first == second


@pytest.mark.parametrize("seeds", [
    [b"config"],
    [b"boring-vault-state", u64_le(1)],
    [b"boring-vault", u64_le(7), bytes([2])],
    [b"x" * 32, bytes(Pubkey.new_unique())],
    [],
])
def test_derive_matches_runtime_algorithm(seeds):
    address, bump = derive_address(VAULT_PROGRAM, seeds)
    expected_address, expected_bump = Pubkey.find_program_address(seeds, VAULT_PROGRAM)
    assert address == expected_address
    assert bump == expected_bump
    assert not address.is_on_curve()


def test_seed_order_matters():
    a, _ = derive_address(QUEUE_PROGRAM, [b"a", b"b"])
    b, _ = derive_address(QUEUE_PROGRAM, [b"b", b"a"])
    assert a != b


def test_seed_longer_than_32_bytes_rejected():
    with pytest.raises(DerivationError) as exc_info:
        derive_address(VAULT_PROGRAM, [b"y" * 33])
    assert exc_info.value.program_id == VAULT_PROGRAM
    assert exc_info.value.seeds == [b"y" * 33]


def test_too_many_seeds_rejected():
    with pytest.raises(DerivationError):
        derive_address(VAULT_PROGRAM, [b"s"] * 16)


def test_helpers_use_program_seeds():
    deriver = AddressDeriver()
    owner = Pubkey.new_unique()
    mint = Pubkey.new_unique()
    vault_state = deriver.vault_state(3)

    assert vault_state == Pubkey.find_program_address([b"boring-vault-state", u64_le(3)], VAULT_PROGRAM)[0]
    assert deriver.vault(3, 1) == Pubkey.find_program_address(
        [b"boring-vault", u64_le(3), bytes([1])], VAULT_PROGRAM
    )[0]
    assert deriver.share_mint(vault_state) == Pubkey.find_program_address(
        [b"share-token", bytes(vault_state)], VAULT_PROGRAM
    )[0]
    assert deriver.asset_data(vault_state, mint) == Pubkey.find_program_address(
        [b"asset-data", bytes(vault_state), bytes(mint)], VAULT_PROGRAM
    )[0]
    assert deriver.user_withdraw_state(owner) == Pubkey.find_program_address(
        [b"boring-queue-user-withdraw-state", bytes(owner)], QUEUE_PROGRAM
    )[0]
    assert deriver.withdraw_request(owner, 5) == Pubkey.find_program_address(
        [b"boring-queue-withdraw-request", bytes(owner), u64_le(5)], QUEUE_PROGRAM
    )[0]
    assert deriver.associated_token_address(owner, mint) == Pubkey.find_program_address(
        [bytes(owner), bytes(Pubkey.from_string(TOKEN_2022_PROGRAM_ID)), bytes(mint)],
        Pubkey.from_string(ASSOCIATED_TOKEN_PROGRAM_ID),
    )[0]


def test_short_queue_seeds():
    owner = Pubkey.new_unique()
    deriver = AddressDeriver(queue_seeds=QueueSeeds.short())
    assert deriver.user_withdraw_state(owner) == Pubkey.find_program_address(
        [b"user-withdraw-state", bytes(owner)], QUEUE_PROGRAM
    )[0]
    assert deriver.withdraw_request(owner, 0) == Pubkey.find_program_address(
        [b"withdraw-request", bytes(owner), u64_le(0)], QUEUE_PROGRAM
    )[0]
    assert deriver.user_withdraw_state(owner) != AddressDeriver().user_withdraw_state(owner)


def test_withdraw_request_nonce_is_little_endian():
    owner = Pubkey.new_unique()
    deriver = AddressDeriver()
    assert deriver.withdraw_request(owner, 1) != deriver.withdraw_request(owner, 1 << 56)


def test_cache_is_bounded():
    deriver = AddressDeriver(cache_size=2)
    for vault_id in range(5):
        deriver.vault_state(vault_id)
    assert len(deriver._cache) == 2
    assert deriver.vault_state(4) == AddressDeriver().vault_state(4)


def test_library_failure_becomes_derivation_error(monkeypatch):
    class ExhaustedPubkey:
        from_string = staticmethod(Pubkey.from_string)

        @staticmethod
        def find_program_address(seeds, program_id):
            raise ValueError("Unable to find a viable program address bump seed")

    monkeypatch.setattr(derivation, "Pubkey", ExhaustedPubkey)
    with pytest.raises(DerivationError) as exc_info:
        derive_address(BORING_VAULT_PROGRAM_ID, [b"seed"])
    assert exc_info.value.program_id == VAULT_PROGRAM
    assert exc_info.value.seeds == [b"seed"]
