"""Transaction receipt checks with revert reasons."""

import logging

from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError
from web3.types import TxReceipt

logger = logging.getLogger(__name__)

#: How long we wait for a transaction to be mined, seconds
DEFAULT_RECEIPT_TIMEOUT = 120.0


class TransactionAssertionError(AssertionError):
    """A transaction was mined but reverted."""

    def __init__(self, message: str, revert_reason: str | None = None, receipt: TxReceipt | None = None):
        super().__init__(message)
        self.revert_reason = revert_reason
        self.receipt = receipt


def fetch_revert_reason(web3: Web3, tx_hash: HexBytes | str, block_number: int) -> str:
    """Replay a failed transaction as a call to get its revert reason.

    The call is made against the block the transaction was mined in.
    """
    tx = web3.eth.get_transaction(tx_hash)
    replay = {
        "from": tx["from"],
        "to": tx["to"],
        "data": tx["input"],
        "value": tx["value"],
        "gas": tx["gas"],
    }
    try:
        web3.eth.call(replay, block_number)
    except ContractLogicError as e:
        return str(e.message or e)
    return "<no revert reason>"


def assert_transaction_success_with_explanation(
    web3: Web3,
    tx_hash: HexBytes | str,
    timeout: float = DEFAULT_RECEIPT_TIMEOUT,
) -> TxReceipt:
    """Wait for a transaction and crash with the revert reason if it failed.

    :param tx_hash:
        Hash of a broadcasted transaction

    :param timeout:
        Seconds to wait for the receipt

    :return:
        The receipt of the successful transaction

    :raise TransactionAssertionError:
        If the transaction reverted
    """
    tx_hash = HexBytes(tx_hash)
    receipt = web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)

    if receipt["status"] == 1:
        logger.debug("Transaction %s succeeded in block %d", tx_hash.hex(), receipt["blockNumber"])
        return receipt

    revert_reason = fetch_revert_reason(web3, tx_hash, receipt["blockNumber"])
    raise TransactionAssertionError(
        f"Transaction {tx_hash.hex()} failed in block {receipt['blockNumber']}, reason: {revert_reason}",
        revert_reason=revert_reason,
        receipt=receipt,
    )
