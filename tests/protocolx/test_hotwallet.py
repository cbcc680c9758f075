"""Hot wallet nonce handling."""

import pytest
from eth_account import Account
from web3.exceptions import ContractLogicError

from protocolx.hotwallet import HotWallet


class FakeFunction:
    """Bound contract call that builds a plain transfer-like transaction."""

    fn_name = "claimTokensTest"

    def __init__(self, web3, revert: bool = False):
        self.w3 = web3
        self.revert = revert
        self.built_with = None

    def build_transaction(self, tx_params):
        self.built_with = dict(tx_params)
        if self.revert:
            raise ContractLogicError("execution reverted: Already claimed")
        return {
            "to": "0x000000000000000000000000000000000000dEaD",
            "data": "0x",
            "gas": 100_000,
            "gasPrice": 1_000_000_000,
            "value": tx_params.get("value", 0),
            "nonce": tx_params["nonce"],
            "chainId": tx_params["chainId"],
        }


@pytest.fixture()
def wallet(fake_web3) -> HotWallet:
    fake_web3.eth.nonce = 10
    wallet = HotWallet(Account.create())
    wallet.sync_nonce(fake_web3)
    return wallet


def test_from_private_key():
    account = Account.create()
    wallet = HotWallet.from_private_key(account.key.to_0x_hex())
    assert wallet.address == account.address
    assert wallet.current_nonce is None

    with pytest.raises(AssertionError):
        HotWallet.from_private_key(account.key.hex().removeprefix("0x"))


def test_allocate_nonce_needs_sync():
    wallet = HotWallet(Account.create())
    with pytest.raises(AssertionError):
        wallet.allocate_nonce()


def test_sign_bound_call(wallet, fake_web3):
    func = FakeFunction(fake_web3)
    signed = wallet.sign_bound_call_with_new_nonce(func, {"gas": 200_000})

    assert func.built_with["nonce"] == 10
    assert func.built_with["from"] == wallet.address
    assert func.built_with["chainId"] == fake_web3.eth.chain_id
    assert func.built_with["gas"] == 200_000
    assert wallet.current_nonce == 11
    assert Account.recover_transaction(signed.raw_transaction) == wallet.address


def test_reverted_estimation_keeps_nonce(wallet, fake_web3):
    """A call that reverts while being built does not burn a nonce."""
    with pytest.raises(ContractLogicError):
        wallet.sign_bound_call_with_new_nonce(FakeFunction(fake_web3, revert=True))

    assert wallet.current_nonce == 10

    wallet.sign_bound_call_with_new_nonce(FakeFunction(fake_web3))
    assert wallet.current_nonce == 11


def test_transact_and_broadcast(wallet, fake_web3):
    func = FakeFunction(fake_web3)
    tx_hash = wallet.transact_and_broadcast_with_contract(func, gas_limit=300_000, value=14)

    assert func.built_with["value"] == 14
    assert func.built_with["gas"] == 300_000
    assert len(fake_web3.eth.sent_raw) == 1
    assert fake_web3.eth.wait_for_transaction_receipt(tx_hash)["status"] == 1


def test_repr(wallet):
    assert wallet.address in repr(wallet)
    assert "nonce 10" in repr(wallet)
