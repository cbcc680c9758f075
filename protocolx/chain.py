"""Chain descriptors.

A :py:class:`ChainDescriptor` carries everything we know about one network:
where to connect and which messaging contracts are pre-deployed there.
:py:func:`protocolx.distribution.deploy` attaches the live connection,
the bound wallet and the deployed contract handles to it in place.

Chain descriptors are usually loaded from an Axelar style chain config file::

    [
        {
            "name": "Avalanche",
            "chainId": 2500,
            "rpc": "http://localhost:8500/0",
            "gateway": "0x...",
            "gasService": "0x...",
            "constAddressDeployer": "0x...",
            "tokenSymbol": "AVAX"
        }
    ]
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

if TYPE_CHECKING:
    from protocolx.hotwallet import HotWallet

logger = logging.getLogger(__name__)


class ChainConfigError(Exception):
    """Chain config file is missing data we need."""


@dataclass(slots=True)
class ChainDescriptor:
    """One blockchain network taking part in the distribution flow."""

    #: Axelar chain name, e.g. ``"Avalanche"``. Used as the remote chain identifier.
    name: str

    #: JSON-RPC endpoint
    rpc: str

    #: Axelar gateway contract
    gateway: HexAddress

    #: Axelar gas service contract
    gas_service: HexAddress

    #: Constant address deployer used for the CREATE2 proxy deployment
    const_address_deployer: HexAddress

    #: Native gas token symbol, used for bridge fee estimation
    token_symbol: str = "ETH"

    #: EVM chain id, if known from the config
    chain_id: int | None = None

    #: Live connection, set by deploy
    web3: Web3 | None = field(default=None, repr=False)

    #: Wallet bound to this chain with its own nonce counter, set by deploy
    wallet: "HotWallet | None" = field(default=None, repr=False)

    #: DaoTokenDistributor proxy with the implementation ABI, set by deploy
    distributor: Contract | None = field(default=None, repr=False)

    #: DaoDistributionCalculator, set by deploy
    calculator: Contract | None = field(default=None, repr=False)

    @property
    def is_deployed(self) -> bool:
        return self.distributor is not None and self.calculator is not None

    def require_deployed(self):
        """Raise unless deploy has been run for this chain."""
        if self.web3 is None or self.wallet is None or not self.is_deployed:
            raise ChainConfigError(f"Chain {self.name} has no deployed contracts, run deploy() first")

    @classmethod
    def from_config(cls, data: dict) -> "ChainDescriptor":
        """Read a chain entry from the Axelar chain config format."""
        missing = [key for key in ("name", "rpc", "gateway", "gasService", "constAddressDeployer") if not data.get(key)]
        if missing:
            raise ChainConfigError(f"Chain config entry {data.get('name', '<unnamed>')} is missing: {', '.join(missing)}")

        chain_id = data.get("chainId")
        return cls(
            name=data["name"],
            rpc=data["rpc"],
            gateway=Web3.to_checksum_address(data["gateway"]),
            gas_service=Web3.to_checksum_address(data["gasService"]),
            const_address_deployer=Web3.to_checksum_address(data["constAddressDeployer"]),
            token_symbol=data.get("tokenSymbol", "ETH"),
            chain_id=int(chain_id) if chain_id is not None else None,
        )


def load_chain_descriptors(path: Path | str) -> list[ChainDescriptor]:
    """Load chain descriptors from a JSON chain config file.

    :param path:
        File holding either a list of chain entries, or an object
        keyed by chain name.

    :return:
        Descriptors in file order
    """
    path = Path(path)
    if not path.exists():
        raise ChainConfigError(f"Chain config file does not exist: {path.resolve()}")

    data = json.loads(path.read_text())

    if isinstance(data, dict):
        entries = []
        for name, entry in data.items():
            entry = dict(entry)
            entry.setdefault("name", name)
            entries.append(entry)
    elif isinstance(data, list):
        entries = data
    else:
        raise ChainConfigError(f"Chain config must be a list or an object, got {type(data).__name__}")

    chains = [ChainDescriptor.from_config(entry) for entry in entries]
    logger.info("Loaded %d chains from %s: %s", len(chains), path, ", ".join(c.name for c in chains))
    return chains


def get_chain(chains: list[ChainDescriptor], name: str) -> ChainDescriptor:
    """Find a chain by its name, case-insensitive."""
    for chain in chains:
        if chain.name.lower() == name.lower():
            return chain
    raise ChainConfigError(f"Unknown chain {name}. Available: {[c.name for c in chains]}")
