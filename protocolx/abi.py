"""Compiled contract artifacts.

We consume Hardhat build artifacts: JSON files with ``abi`` and ``bytecode`` keys.
The contract sources live outside this package and are compiled separately.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract

logger = logging.getLogger(__name__)

#: Artifacts that ship inside this package
BUNDLED_ARTIFACTS = Path(__file__).parent / "artifacts"


@dataclass(slots=True, frozen=True)
class ContractArtifact:
    """ABI and creation bytecode of a compiled contract."""

    #: Contract name, e.g. ``DaoTokenDistributor``
    contract_name: str

    #: ABI as parsed JSON
    abi: list[dict]

    #: Creation bytecode, without constructor arguments
    bytecode: HexBytes

    @property
    def has_bytecode(self) -> bool:
        return len(self.bytecode) > 0


def load_artifact(path: Path | str, artifact_root: Path | None = None) -> ContractArtifact:
    """Read a Hardhat artifact JSON file.

    :param path:
        Artifact file. Relative paths are resolved against ``artifact_root``
        or, when not given, against the bundled artifacts.
    """
    path = Path(path)
    if not path.is_absolute():
        path = (artifact_root or BUNDLED_ARTIFACTS) / path

    assert path.exists(), f"Contract artifact missing: {path.resolve()}"

    data = json.loads(path.read_text())
    abi = data["abi"]
    bytecode = data.get("bytecode") or "0x"
    # Foundry style artifacts nest the bytecode
    if isinstance(bytecode, dict):
        bytecode = bytecode["object"]

    contract_name = data.get("contractName") or path.stem
    logger.debug("Loaded artifact %s from %s", contract_name, path)
    return ContractArtifact(contract_name=contract_name, abi=abi, bytecode=HexBytes(bytecode))


def get_contract_factory(web3: Web3, artifact: ContractArtifact) -> type[Contract]:
    """Contract class we can use to build the deployment transaction."""
    assert artifact.has_bytecode, f"Artifact {artifact.contract_name} has no bytecode, cannot deploy"
    return web3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)


def get_deployed_contract(web3: Web3, artifact: ContractArtifact, address: HexAddress | str) -> Contract:
    """Bind an artifact ABI to an on-chain address."""
    contract = web3.eth.contract(address=Web3.to_checksum_address(address), abi=artifact.abi)
    contract.name = artifact.contract_name
    return contract
