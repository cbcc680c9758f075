"""Contract deployment helpers.

- Plain deployments from Hardhat artifacts with :py:func:`deploy_contract`

- Upgradable deployments with :py:func:`deploy_upgradable`: the implementation
  is deployed normally and the proxy through Axelar's ``ConstAddressDeployer``,
  so the proxy lands at the same CREATE2 address on every chain
  for the same deployer and salt key
"""

import logging

from eth_abi import encode
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract

from protocolx.abi import ContractArtifact, get_contract_factory, get_deployed_contract, load_artifact
from protocolx.hotwallet import HotWallet
from protocolx.trace import assert_transaction_success_with_explanation

logger = logging.getLogger(__name__)

#: ABI of Axelar's ConstAddressDeployer
CONST_ADDRESS_DEPLOYER_ARTIFACT = "ConstAddressDeployer.json"


class ContractDeploymentFailed(Exception):
    """Deployment transaction did not produce a contract."""


def deploy_contract(
    web3: Web3,
    deployer: HotWallet,
    artifact: ContractArtifact,
    constructor_args: list | tuple = (),
    gas_limit: int | None = None,
) -> Contract:
    """Deploy a contract from its artifact and wait for it.

    :param deployer:
        Hot wallet with a synced nonce on this chain

    :return:
        Contract instance at the deployed address
    """
    factory = get_contract_factory(web3, artifact)
    constructor = factory.constructor(*constructor_args)

    tx_params = {}
    if gas_limit is not None:
        tx_params["gas"] = gas_limit

    signed = deployer.sign_bound_call_with_new_nonce(constructor, tx_params, web3=web3)
    tx_hash = web3.eth.send_raw_transaction(signed.raw_transaction)
    receipt = assert_transaction_success_with_explanation(web3, tx_hash)

    address = receipt["contractAddress"]
    if not address:
        raise ContractDeploymentFailed(f"No contract address in receipt of {artifact.contract_name} deployment {tx_hash.hex()}")

    logger.info("Deployed %s at %s, tx %s", artifact.contract_name, address, tx_hash.hex())
    return get_deployed_contract(web3, artifact, address)


def get_salt_from_key(key: str) -> bytes:
    """CREATE2 salt derived from a human readable key.

    Same as ``keccak256(abi.encode(key))`` on the Solidity side.
    """
    return Web3.keccak(encode(["string"], [key]))


def get_const_address_deployer(web3: Web3, address: HexAddress | str) -> Contract:
    artifact = load_artifact(CONST_ADDRESS_DEPLOYER_ARTIFACT)
    return get_deployed_contract(web3, artifact, address)


def deploy_upgradable(
    web3: Web3,
    deployer: HotWallet,
    const_address_deployer: HexAddress | str,
    implementation_artifact: ContractArtifact,
    proxy_artifact: ContractArtifact,
    implementation_constructor_args: list | tuple = (),
    proxy_constructor_args: list | tuple = (),
    setup_params: bytes = b"",
    key: str = "upgradable",
    gas_limit: int | None = None,
) -> Contract:
    """Deploy an implementation behind an init proxy.

    1. Deploy the implementation contract
    2. Deploy the proxy with ``ConstAddressDeployer.deployAndInit()``,
       calling ``init(implementation, owner, setup_params)`` in the same transaction

    :param const_address_deployer:
        Address of the pre-deployed ``ConstAddressDeployer`` on this chain

    :param setup_params:
        ABI encoded parameters the implementation ``_setup()`` receives through the proxy

    :param key:
        Salt key. The proxy address depends on it, the proxy bytecode and the deployer.

    :return:
        Contract at the proxy address with the implementation ABI
    """
    implementation = deploy_contract(
        web3,
        deployer,
        implementation_artifact,
        implementation_constructor_args,
        gas_limit=gas_limit,
    )

    proxy_factory = get_contract_factory(web3, proxy_artifact)
    proxy_bytecode = HexBytes(proxy_factory.constructor(*proxy_constructor_args).data_in_transaction)
    init_data = proxy_factory.encode_abi(
        "init",
        args=[implementation.address, deployer.address, setup_params],
    )

    salt = get_salt_from_key(key)
    const_deployer = get_const_address_deployer(web3, const_address_deployer)
    proxy_address = const_deployer.functions.deployedAddress(proxy_bytecode, deployer.address, salt).call()

    logger.info(
        "Deploying %s proxy for %s at predicted address %s, salt key %s",
        proxy_artifact.contract_name,
        implementation_artifact.contract_name,
        proxy_address,
        key,
    )

    tx_hash = deployer.transact_and_broadcast_with_contract(
        const_deployer.functions.deployAndInit(proxy_bytecode, salt, HexBytes(init_data)),
        gas_limit=gas_limit,
    )
    assert_transaction_success_with_explanation(web3, tx_hash)

    if len(web3.eth.get_code(proxy_address)) == 0:
        raise ContractDeploymentFailed(f"No code at the proxy address {proxy_address} after deployAndInit {tx_hash.hex()}")

    return get_deployed_contract(web3, implementation_artifact, proxy_address)
