"""Deploy ProtocolX DAO distribution contracts on two chains and run a distribution.

- Deploys ``DaoTokenDistributor`` (behind a proxy) and ``DaoDistributionCalculator``
  on the source and on the destination chain
- Sends a distribution request from the source chain to the calculator
  on the destination chain over Axelar
- Waits for the answer, claims for two throwaway addresses
  and checks neither can claim twice

The deployer needs native gas token on both chains.

Environment variables
---------------------

``CHAIN_CONFIG``
    Path to the Axelar style chain config JSON. Defaults to ``chain-config/local.json``.

``ARTIFACTS_ROOT``
    Hardhat ``artifacts`` directory with the compiled contracts. Defaults to ``artifacts``.

``PRIVATE_KEY``
    Deployer private key.

``SOURCE_CHAIN``
    Chain name hosting the distributor we trigger and claim from. Defaults to ``Avalanche``.

``DESTINATION_CHAIN``
    Chain name hosting the calculator. Defaults to ``Fantom``.

``BRIDGE_FEE``
    Fixed bridge fee in wei for each direction. Use on local chains.
    An empty value counts as not set.

``AXELAR_ENVIRONMENT``
    ``testnet`` or ``mainnet``. When ``BRIDGE_FEE`` is not set or empty,
    fees are estimated with the Axelar GMP API of this environment.
    Defaults to ``testnet``.

``CROSS_CHAIN_TIMEOUT``
    Seconds to wait for the calculator answer. Defaults to 180.

``LOG_LEVEL``
    Console log level. Defaults to ``info``.

Local run
---------

Start the Axelar local development chains first, then:

.. code-block:: shell

    PRIVATE_KEY=0x... \\
    BRIDGE_FEE=0 \\
    python scripts/protocolx/deploy-and-distribute.py
"""

import logging
import os
import sys
from pathlib import Path

from tabulate import tabulate

from protocolx.chain import get_chain, load_chain_descriptors
from protocolx.constants import DEFAULT_CROSS_CHAIN_TIMEOUT
from protocolx.distribution import DistributionWaitConfig, ExecuteOptions, deploy, execute
from protocolx.fees import create_bridge_fee_calculator
from protocolx.hotwallet import HotWallet
from protocolx.utils import setup_console_logging

logger = logging.getLogger(__name__)


def main():
    setup_console_logging("info")

    chain_config = Path(os.environ.get("CHAIN_CONFIG", "chain-config/local.json"))
    artifact_root = Path(os.environ.get("ARTIFACTS_ROOT", "artifacts"))
    source_name = os.environ.get("SOURCE_CHAIN", "Avalanche")
    destination_name = os.environ.get("DESTINATION_CHAIN", "Fantom")
    bridge_fee = os.environ.get("BRIDGE_FEE")
    axelar_environment = os.environ.get("AXELAR_ENVIRONMENT", "testnet")
    timeout = float(os.environ.get("CROSS_CHAIN_TIMEOUT", str(DEFAULT_CROSS_CHAIN_TIMEOUT)))

    private_key = os.environ.get("PRIVATE_KEY")
    assert private_key, "PRIVATE_KEY environment variable not set"
    wallet = HotWallet.from_private_key(private_key)

    chains = load_chain_descriptors(chain_config)
    source = get_chain(chains, source_name)
    destination = get_chain(chains, destination_name)

    calculate_bridge_fee, fee_mode = create_bridge_fee_calculator(bridge_fee, axelar_environment)

    print("=" * 70)
    print("ProtocolX DAO token distribution")
    print("=" * 70)
    print(f"  Deployer: {wallet.address}")
    print(f"  Source chain: {source.name}")
    print(f"  Destination chain: {destination.name}")
    print(f"  Bridge fees: {fee_mode}")
    print()

    for chain in (source, destination):
        deploy(chain, wallet, artifact_root)

    options = ExecuteOptions(
        source=source,
        destination=destination,
        calculate_bridge_fee=calculate_bridge_fee,
        args=[source.name, destination.name, source.distributor.address, destination.calculator.address],
        wait=DistributionWaitConfig(timeout=timeout),
    )
    report = execute(chains, wallet, options)

    print("\nContracts:")
    print(
        tabulate(
            [[c.name, c.distributor.address, c.calculator.address] for c in (source, destination)],
            headers=["Chain", "DaoTokenDistributor", "DaoDistributionCalculator"],
            tablefmt="simple",
        )
    )

    print("\nClaims:")
    print(
        tabulate(
            [[c.function, c.address, "ok" if c.succeeded else "reverted", "yes" if c.as_expected else "NO", c.balance] for c in report.claims],
            headers=["Function", "Address", "Result", "As expected", "Balance"],
            tablefmt="simple",
        )
    )

    print("\nGenerated addresses:")
    rows = []
    for address in report.generated_addresses:
        rows.append([address, "yes" if address in report.addresses else "", report.distributions.get(address, 0), report.balances_after[address]])
    print(tabulate(rows, headers=["Address", "In payload", "Distribution", "Balance"], tablefmt="simple"))

    summary = [
        ["L1 configured to", report.layer_two_chain],
        ["L2 configured to", report.layer_one_chain],
        ["Token supply", f"{report.token_supply:,}"],
        ["Bridge fee (wei)", f"{report.fee_source:,} + {report.fee_remote:,}"],
        ["Distribution tx", report.calculation_tx_hash.hex()],
        ["Failed claims", len(report.failed_claims)],
    ]
    print("\nSummary:")
    print(tabulate(summary, tablefmt="simple"))

    if report.failed_claims:
        logger.error("%d claim(s) did not go as expected", len(report.failed_claims))
        sys.exit(1)


if __name__ == "__main__":
    main()
