"""Distribution payload encoding."""

from types import SimpleNamespace

import pytest
from eth_abi import decode
from hexbytes import HexBytes

from protocolx.payload import (
    PayloadEventMissing,
    decode_distribution_payload,
    decode_requested_distributions,
    encode_distribution_payload,
    encode_token_setup_params,
)

ADDRESSES = [
    "0x000000000000000000000000000000000000dead",
    "0x0000000000000000000000000000000000000001",
]


def test_payload_round_trip():
    payload = encode_distribution_payload(ADDRESSES, 123_456_790)
    decoded = decode_distribution_payload(payload)
    assert decoded.addresses == ("0x000000000000000000000000000000000000dEaD", "0x0000000000000000000000000000000000000001")
    assert decoded.supply == 123_456_790


def test_payload_layout():
    """Plain ABI encoding of (address[], uint256)."""
    payload = encode_distribution_payload(ADDRESSES, 1)
    # Head: offset of the dynamic array, then the supply
    assert int.from_bytes(payload[0:32], "big") == 64
    assert int.from_bytes(payload[32:64], "big") == 1
    # Array length
    assert int.from_bytes(payload[64:96], "big") == 2
    assert len(payload) == 32 * 5


def test_negative_supply():
    with pytest.raises(AssertionError):
        encode_distribution_payload(ADDRESSES, -1)


def test_token_setup_params():
    params = encode_token_setup_params("ProtocolX Dao Token", "PROX")
    assert decode(["string", "string"], params) == ("ProtocolX Dao Token", "PROX")


def _distributor_with_events(events):
    requested = SimpleNamespace(process_receipt=lambda receipt, errors=None: events)
    return SimpleNamespace(events=SimpleNamespace(RequestedDistributions=lambda: requested))


def test_decode_requested_distributions():
    payload = encode_distribution_payload(ADDRESSES, 99)
    distributor = _distributor_with_events([{"args": {"payload": payload}}])

    decoded = decode_requested_distributions(distributor, {"transactionHash": HexBytes("0x01")})
    assert decoded.supply == 99
    assert len(decoded.addresses) == 2


def test_decode_requested_distributions_missing():
    distributor = _distributor_with_events([])
    with pytest.raises(PayloadEventMissing):
        decode_requested_distributions(distributor, {"transactionHash": HexBytes("0x01")})
