"""Private key wallet with local nonce tracking.

We sign transactions locally and broadcast them with ``eth_sendRawTransaction``.
The nonce is tracked in Python, so several transactions can be sent back to back
without waiting for the node to see the previous ones.

Each chain needs its own nonce counter: bind a separate :py:class:`HotWallet`
per chain from the same account.

.. code-block:: python

    deployer = HotWallet.from_private_key(os.environ["PRIVATE_KEY"])
    deployer.sync_nonce(web3)
    tx_hash = deployer.transact_and_broadcast_with_contract(contract.functions.setFoo(1))
    assert_transaction_success_with_explanation(web3, tx_hash)
"""

import logging

from eth_account import Account
from eth_account.datastructures import SignedTransaction
from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.types import TxParams

logger = logging.getLogger(__name__)


class HotWallet:
    """Hot wallet for signing transactions with a locally held private key."""

    def __init__(self, account: LocalAccount):
        assert isinstance(account, LocalAccount), f"Expected LocalAccount, got {type(account)}"
        self.account = account
        self.current_nonce: int | None = None

    def __repr__(self):
        return f"<HotWallet {self.address} nonce {self.current_nonce}>"

    @property
    def address(self) -> HexAddress:
        return self.account.address

    @classmethod
    def from_private_key(cls, key: str) -> "HotWallet":
        """Create a hot wallet from a 0x-prefixed hex private key."""
        assert key.startswith("0x"), "Private key must be 0x-prefixed"
        return cls(Account.from_key(key))

    def sync_nonce(self, web3: Web3):
        """Read the next nonce from the chain.

        Call once per chain before the first transaction.
        """
        self.current_nonce = web3.eth.get_transaction_count(self.address, "pending")
        logger.info("Synced nonce for %s to %d", self.address, self.current_nonce)

    def allocate_nonce(self) -> int:
        """Take the next nonce for a transaction we are about to sign."""
        assert self.current_nonce is not None, "Call sync_nonce() first"
        nonce = self.current_nonce
        self.current_nonce += 1
        return nonce

    def sign_bound_call_with_new_nonce(
        self,
        func: ContractFunction,
        tx_params: TxParams | None = None,
        web3: Web3 | None = None,
    ) -> SignedTransaction:
        """Build and sign a contract call.

        The nonce is consumed only after the transaction has been built.
        A call that reverts already in gas estimation does not leave a hole
        in the nonce sequence.

        :param func:
            Bound contract function, e.g. ``contract.functions.claim(addr)``

        :param tx_params:
            Extra parameters like ``gas`` or ``value``.
            Gas is estimated by the node when not given.

        :param web3:
            Connection to use. Defaults to the one the contract was created with.
        """
        assert self.current_nonce is not None, "Call sync_nonce() first"

        if web3 is None:
            web3 = func.w3

        tx_params = dict(tx_params or {})
        tx_params["from"] = self.address
        tx_params["nonce"] = self.current_nonce
        tx_params.setdefault("chainId", web3.eth.chain_id)

        tx = func.build_transaction(tx_params)
        signed = self.account.sign_transaction(tx)
        self.allocate_nonce()
        return signed

    def transact_and_broadcast_with_contract(
        self,
        func: ContractFunction,
        gas_limit: int | None = None,
        value: int | None = None,
    ) -> HexBytes:
        """Sign a contract call with the next nonce and broadcast it.

        :return:
            Transaction hash
        """
        tx_params = {}
        if gas_limit is not None:
            tx_params["gas"] = gas_limit
        if value is not None:
            tx_params["value"] = value

        web3 = func.w3
        signed = self.sign_bound_call_with_new_nonce(func, tx_params, web3=web3)
        tx_hash = web3.eth.send_raw_transaction(signed.raw_transaction)
        logger.debug("Broadcasted %s from %s: %s", func.fn_name, self.address, tx_hash.hex())
        return tx_hash
