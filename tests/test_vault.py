import pytest
from solders.pubkey import Pubkey

from boring_vault.accounts import MintInfo, TokenAccount, encode_account
from boring_vault.constants import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID
from boring_vault.errors import AccountAbsent, RpcError
from boring_vault.vault import ShareBalance, read_mint_decimals

from factories import make_asset_data, make_mint, make_vault_state


def test_get_vault_state(rpc, deriver, vault_reader):
    state = make_vault_state(vault_id=3, deposit_sub_account=2)
    rpc.put_record(deriver.vault_state(3), state)
    assert vault_reader.get_vault_state(3) == state


def test_missing_vault_state_raises(vault_reader, deriver):
    with pytest.raises(AccountAbsent) as exc_info:
        vault_reader.get_vault_state(77)
    assert exc_info.value.address == deriver.vault_state(77)
    assert exc_info.value.account_type == "BoringVault"


def test_asset_data_optional(rpc, deriver, vault_reader):
    mint = Pubkey.new_unique()
    assert vault_reader.get_asset_data(1, mint) is None
    asset = make_asset_data()
    rpc.put_record(deriver.asset_data(deriver.vault_state(1), mint), asset)
    assert vault_reader.get_asset_data(1, mint) == asset


def test_read_mint_decimals(rpc):
    mint = Pubkey.new_unique()
    rpc.put_record(mint, make_mint(decimals=6))
    assert read_mint_decimals(rpc, mint) == 6
    assert read_mint_decimals(rpc, Pubkey.new_unique()) == 9

    broken = Pubkey.new_unique()
    rpc.fail(broken, RpcError("timeout", method="getAccountInfo"))
    assert read_mint_decimals(rpc, broken) == 9


def test_fetch_user_shares(rpc, deriver, vault_reader):
    owner = Pubkey.new_unique()
    share_mint = deriver.share_mint(deriver.vault_state(1))
    rpc.put_record(share_mint, make_mint(decimals=9))
    assert vault_reader.fetch_user_shares(owner, 1).raw == 0

    ata = deriver.associated_token_address(owner, share_mint, TOKEN_2022_PROGRAM_ID)
    rpc.put_record(ata, TokenAccount(mint=share_mint, owner=owner, amount=1_250_000_000))
    balance = vault_reader.fetch_user_shares(owner, 1)
    assert balance == ShareBalance(raw=1_250_000_000, decimals=9)
    assert balance.formatted == "1.250000000"


def test_share_balance_formatting():
    assert ShareBalance(raw=5, decimals=9).formatted == "0.000000005"
    assert ShareBalance(raw=5, decimals=0).formatted == "5"
    assert str(ShareBalance(raw=1500, decimals=3).amount) == "1.500"


def test_mint_decimals_ignore_token_account_data(rpc, caplog):
    address = Pubkey.new_unique()
    holder = TokenAccount(mint=Pubkey.new_unique(), owner=Pubkey.new_unique(), amount=7)
    rpc.put_record(address, holder)
    assert read_mint_decimals(rpc, address) == 9
    assert "not a mint" in caplog.text


def test_mint_decimals_ignore_uninitialized_mint(rpc):
    address = Pubkey.new_unique()
    rpc.put_record(address, MintInfo(
        mint_authority_option=0,
        mint_authority=Pubkey.default(),
        supply=0,
        decimals=6,
        is_initialized=False,
    ))
    assert read_mint_decimals(rpc, address) == 9


def test_mint_decimals_from_extended_token_2022_mint(rpc):
    address = Pubkey.new_unique()
    base = encode_account(make_mint(decimals=6))
    rpc.put(address, base + bytes(165 - len(base)) + b"\x01" + bytes(40))
    assert read_mint_decimals(rpc, address) == 6


def test_vault_balance_lamports(rpc, deriver, vault_reader):
    rpc.put_record(deriver.vault_state(4), make_vault_state(vault_id=4, deposit_sub_account=2))
    rpc.put(deriver.vault(4, 2), b"", lamports=3_000_000_000)
    assert vault_reader.vault_balance(4) == 3_000_000_000


def test_vault_balance_token(rpc, deriver, vault_reader):
    mint = Pubkey.new_unique()
    rpc.put_record(deriver.vault_state(4), make_vault_state(vault_id=4, deposit_sub_account=2))
    assert vault_reader.vault_balance(4, mint) == 0

    vault = deriver.vault(4, 2)
    ata = deriver.associated_token_address(vault, mint, TOKEN_PROGRAM_ID)
    rpc.put_record(ata, TokenAccount(mint=mint, owner=vault, amount=42_000))
    assert vault_reader.vault_balance(4, mint) == 42_000
