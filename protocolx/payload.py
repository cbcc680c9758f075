"""Distribution payload encoding.

The payload travels from the distributor to the calculator on the other chain
and back. It is the ABI encoding of ``(address[] recipients, uint256 supply)``.
"""

import logging
from dataclasses import dataclass

from eth_abi import decode, encode
from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract
from web3.logs import DISCARD
from web3.types import TxReceipt

logger = logging.getLogger(__name__)

#: ABI types of the payload tuple
DISTRIBUTION_PAYLOAD_TYPES = ["address[]", "uint256"]

#: ABI types of the distributor proxy setup parameters (token name, token symbol)
TOKEN_SETUP_PARAMS_TYPES = ["string", "string"]


class PayloadEventMissing(Exception):
    """The transaction did not emit the event we expected."""


@dataclass(slots=True, frozen=True)
class DistributionPayload:
    """Decoded distribution payload."""

    #: Checksummed recipient addresses, in payload order
    addresses: tuple[HexAddress, ...]

    #: Token supply to distribute
    supply: int


def encode_distribution_payload(addresses: list[HexAddress | str], supply: int) -> bytes:
    """Encode recipients and token supply for ``calculateTokenDistribution()``."""
    assert supply >= 0, f"Negative supply: {supply}"
    checksummed = [Web3.to_checksum_address(a) for a in addresses]
    return encode(DISTRIBUTION_PAYLOAD_TYPES, [checksummed, supply])


def decode_distribution_payload(payload: bytes) -> DistributionPayload:
    """Decode a payload produced by :py:func:`encode_distribution_payload`."""
    addresses, supply = decode(DISTRIBUTION_PAYLOAD_TYPES, bytes(payload))
    return DistributionPayload(
        addresses=tuple(Web3.to_checksum_address(a) for a in addresses),
        supply=supply,
    )


def encode_token_setup_params(name: str, symbol: str) -> bytes:
    """Setup parameters the distributor implementation reads in its proxy ``_setup()``."""
    return encode(TOKEN_SETUP_PARAMS_TYPES, [name, symbol])


def decode_requested_distributions(distributor: Contract, receipt: TxReceipt) -> DistributionPayload:
    """Find the ``RequestedDistributions`` event in a receipt and decode its payload.

    :raise PayloadEventMissing:
        The receipt has no such event
    """
    events = distributor.events.RequestedDistributions().process_receipt(receipt, errors=DISCARD)
    if not events:
        raise PayloadEventMissing(f"No RequestedDistributions event in transaction {receipt['transactionHash'].hex()}")

    payload = events[0]["args"]["payload"]
    decoded = decode_distribution_payload(payload)
    logger.debug("RequestedDistributions payload: %d addresses, supply %d", len(decoded.addresses), decoded.supply)
    return decoded
