"""ProtocolX DAO token distribution flow.

Two chains take part:

- **Layer one** (the source chain) hosts the upgradable ``DaoTokenDistributor``.
  It holds the DAO token, tracks distributions and lets addresses claim.

- **Layer two** (the destination chain) hosts the ``DaoDistributionCalculator``.
  It receives the recipients and the token supply over Axelar, computes
  the per-address amounts and sends them back to the distributor.

Both contracts are deployed on both chains by :py:func:`deploy`.
:py:func:`execute` wires the source distributor and the destination calculator
to each other and runs the whole round trip, followed by a claim sequence
that checks an address can claim only once.

Example::

    chains = load_chain_descriptors("chain-config/local.json")
    source, destination = get_chain(chains, "Avalanche"), get_chain(chains, "Fantom")
    wallet = HotWallet.from_private_key(os.environ["PRIVATE_KEY"])

    for chain in (source, destination):
        deploy(chain, wallet)

    report = execute(
        chains,
        wallet,
        ExecuteOptions(
            source=source,
            destination=destination,
            calculate_bridge_fee=create_fixed_fee_calculator(0),
            args=[source.name, destination.name, source.distributor.address, destination.calculator.address],
        ),
    )
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3.contract.contract import ContractFunction
from web3.exceptions import ContractLogicError
from web3.types import TxReceipt

from protocolx.abi import load_artifact
from protocolx.chain import ChainDescriptor
from protocolx.constants import (
    DAO_DISTRIBUTION_CALCULATOR_ARTIFACT,
    DAO_TOKEN_DECIMALS,
    DAO_TOKEN_DISTRIBUTOR_ARTIFACT,
    DAO_TOKEN_NAME,
    DAO_TOKEN_SYMBOL,
    DEFAULT_CROSS_CHAIN_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TOKEN_SUPPLY,
    EXAMPLE_PROXY_ARTIFACT,
    GENERATED_WALLET_COUNT,
    PROXY_SALT_KEY,
)
from protocolx.deploy import deploy_contract, deploy_upgradable
from protocolx.fees import BridgeFeeCalculator, calculate_round_trip_fee
from protocolx.hotwallet import HotWallet
from protocolx.payload import decode_requested_distributions, encode_distribution_payload, encode_token_setup_params
from protocolx.provider import create_chain_web3
from protocolx.trace import TransactionAssertionError, assert_transaction_success_with_explanation

logger = logging.getLogger(__name__)

#: Hardhat artifacts are looked up here unless told otherwise
DEFAULT_ARTIFACT_ROOT = Path("artifacts")

#: Errors that mean the contract refused the call
EXPECTED_REVERTS = (ContractLogicError, TransactionAssertionError)


class TokenSupplyMismatch(Exception):
    """The supply in the emitted event is not the supply we sent."""


class CrossChainTimeout(TimeoutError):
    """The calculator's answer did not reach the distributor in time."""


class UnexpectedClaimSuccess(AssertionError):
    """A claim that should have reverted went through."""


@dataclass(slots=True)
class DistributionWaitConfig:
    """How long we wait for the cross-chain round trip to complete."""

    #: Give up after this many seconds
    timeout: float = DEFAULT_CROSS_CHAIN_TIMEOUT

    #: Seconds between distributor reads
    poll_interval: float = DEFAULT_POLL_INTERVAL

    @classmethod
    def create_test_config(cls) -> "DistributionWaitConfig":
        """Fast polling for tests against fakes and local chains."""
        return cls(timeout=5.0, poll_interval=0.0)


@dataclass(slots=True)
class ExecuteOptions:
    """Parameters of :py:func:`execute`."""

    #: Layer one chain with the distributor we trigger and claim from
    source: ChainDescriptor

    #: Layer two chain with the calculator
    destination: ChainDescriptor

    #: Bridge fee in wei for a message from the first chain to the second
    calculate_bridge_fee: BridgeFeeCalculator

    #: ``[l1_chain_name, l2_chain_name, l1_contract_address, l2_contract_address]``
    args: list[str]

    #: Token supply to distribute
    token_supply: int = DEFAULT_TOKEN_SUPPLY

    #: Cross-chain wait behaviour
    wait: DistributionWaitConfig = field(default_factory=DistributionWaitConfig)


@dataclass(slots=True)
class ClaimOutcome:
    """Result of one claim attempt."""

    #: Distributor function used, ``claimTokensTest`` or ``claimTokensDelegate``
    function: str

    #: Address claimed for
    address: HexAddress

    #: Whether the claim was supposed to go through
    expected_success: bool

    #: Whether it went through
    succeeded: bool

    #: Token balance of the address after the attempt
    balance: int

    #: Revert message if the claim was refused
    error: str | None = None

    @property
    def as_expected(self) -> bool:
        return self.succeeded == self.expected_success


@dataclass(slots=True)
class DistributionReport:
    """Everything :py:func:`execute` observed."""

    #: Remote chain the source distributor reports after configuration
    layer_two_chain: str

    #: Remote chain the destination calculator reports after configuration
    layer_one_chain: str

    #: All throwaway addresses, in creation order
    generated_addresses: list[HexAddress]

    #: Payload recipients: the last and the first generated address
    addresses: list[HexAddress]

    #: Token supply sent
    token_supply: int

    #: Bridge fee for source -> destination, wei
    fee_source: int

    #: Bridge fee for destination -> source, wei
    fee_remote: int

    #: Distribution transaction hash
    calculation_tx_hash: HexBytes

    #: Distribution amount per payload address
    distributions: dict[HexAddress, int] = field(default_factory=dict)

    #: Balances of payload addresses before claiming
    balances_before: dict[HexAddress, int] = field(default_factory=dict)

    #: Claim attempts in order
    claims: list[ClaimOutcome] = field(default_factory=list)

    #: Balances of all generated addresses after claiming
    balances_after: dict[HexAddress, int] = field(default_factory=dict)

    @property
    def total_fee(self) -> int:
        return self.fee_source + self.fee_remote

    @property
    def failed_claims(self) -> list[ClaimOutcome]:
        return [c for c in self.claims if not c.as_expected]


def generate_wallets(amount: int) -> list[LocalAccount]:
    """Create throwaway accounts.

    Only their addresses are used. The keys are not stored anywhere.
    """
    assert amount > 0, f"Need at least one wallet, got {amount}"
    return [Account.create() for _ in range(amount)]


def deploy(chain: ChainDescriptor, wallet: HotWallet, artifact_root: Path = DEFAULT_ARTIFACT_ROOT):
    """Connect to a chain and deploy the distributor and the calculator there.

    Sets ``web3``, ``wallet``, ``distributor`` and ``calculator`` on ``chain``.

    - The distributor is an upgradable contract behind ``ExampleProxy``,
      deployed through the chain's constant address deployer
    - The calculator is a plain contract

    Deployment errors propagate as is.

    :param wallet:
        Funded deployer. A separate nonce-tracking wallet is bound for this chain.

    :param artifact_root:
        Directory holding the Hardhat ``artifacts`` tree
    """
    chain.web3 = create_chain_web3(chain.rpc, expected_chain_id=chain.chain_id)
    chain.wallet = HotWallet(wallet.account)
    chain.wallet.sync_nonce(chain.web3)

    distributor_artifact = load_artifact(DAO_TOKEN_DISTRIBUTOR_ARTIFACT, artifact_root)
    calculator_artifact = load_artifact(DAO_DISTRIBUTION_CALCULATOR_ARTIFACT, artifact_root)
    proxy_artifact = load_artifact(EXAMPLE_PROXY_ARTIFACT, artifact_root)

    logger.info("Deploying DaoTokenDistributor for %s.", chain.name)
    chain.distributor = deploy_upgradable(
        chain.web3,
        chain.wallet,
        chain.const_address_deployer,
        distributor_artifact,
        proxy_artifact,
        implementation_constructor_args=[chain.gateway, chain.gas_service, DAO_TOKEN_DECIMALS],
        setup_params=encode_token_setup_params(DAO_TOKEN_NAME, DAO_TOKEN_SYMBOL),
        key=PROXY_SALT_KEY,
    )
    logger.info("Deployed DaoTokenDistributor for %s at %s.", chain.name, chain.distributor.address)

    logger.info("Deploying DaoDistributionCalculator for %s.", chain.name)
    chain.calculator = deploy_contract(chain.web3, chain.wallet, calculator_artifact, [chain.gateway])
    logger.info("Deployed DaoDistributionCalculator for %s at %s.", chain.name, chain.calculator.address)


def _transact(chain: ChainDescriptor, func: ContractFunction, value: int | None = None) -> TxReceipt:
    """Send a contract call from the chain's wallet and wait until it is mined."""
    tx_hash = chain.wallet.transact_and_broadcast_with_contract(func, value=value)
    return assert_transaction_success_with_explanation(chain.web3, tx_hash)


def configure_layers(
    source: ChainDescriptor,
    destination: ChainDescriptor,
    l1_chain: str,
    l2_chain: str,
    l1_contract: HexAddress | str,
    l2_contract: HexAddress | str,
) -> tuple[str, str]:
    """Point the source distributor and the destination calculator at each other.

    :return:
        Tuple (layer two chain as read from the distributor, layer one chain as read from the calculator)
    """
    _transact(source, source.distributor.functions.configureLayerTwo(l2_chain, l2_contract))
    layer_two_chain = source.distributor.functions.layerTwoChain().call()

    _transact(destination, destination.calculator.functions.configureLayerOne(l1_chain, l1_contract))
    layer_one_chain = destination.calculator.functions.layerOneChain().call()

    logger.info("L1 contract is configured to %s, L2 contract is configured to %s", layer_two_chain, layer_one_chain)
    return layer_two_chain, layer_one_chain


def wait_for_distributions(
    chain: ChainDescriptor,
    addresses: list[HexAddress],
    config: DistributionWaitConfig,
) -> dict[HexAddress, int]:
    """Wait until the distributor has an amount for every address.

    The amounts are written by the calculator's answer arriving over Axelar,
    some time after the distribution transaction was mined.

    The distributor has no view telling whether the answer has landed,
    so a zero amount is read as "not arrived yet". An answer that gives
    some address a zero share therefore ends in :py:class:`CrossChainTimeout`.
    The calculator splits the supply over a handful of addresses, so every
    share is non-zero in practice.

    :return:
        Distribution amount per address

    :raise CrossChainTimeout:
        If some address still has no amount when the timeout passes
    """
    distributor = chain.distributor
    deadline = time.time() + config.timeout
    attempt = 0

    while True:
        attempt += 1
        amounts = {a: distributor.functions.distributions(a).call() for a in addresses}
        pending = [a for a, amount in amounts.items() if amount == 0]

        if not pending:
            logger.info("Distributions arrived on %s after %d poll(s)", chain.name, attempt)
            return amounts

        remaining = deadline - time.time()
        if remaining <= 0:
            raise CrossChainTimeout(f"Distributions for {pending} did not arrive on {chain.name} within {config.timeout}s")

        logger.info(
            "Waiting for distributions on %s: %d of %d addresses pending (%.0fs remaining, poll #%d)",
            chain.name,
            len(pending),
            len(addresses),
            remaining,
            attempt,
        )
        time.sleep(min(config.poll_interval, remaining))


def _claim(chain: ChainDescriptor, function: str, address: HexAddress, expected_success: bool, label: str) -> ClaimOutcome:
    distributor = chain.distributor
    func = getattr(distributor.functions, function)(address)

    try:
        _transact(chain, func)
    except EXPECTED_REVERTS as e:
        balance = distributor.functions.balanceOf(address).call()
        if expected_success:
            logger.error("Error: %s: Claim tokens failed (%s)", label, e)
        else:
            logger.info("Expected Error: %s has already claimed tokens", label)
        return ClaimOutcome(function, address, expected_success, succeeded=False, balance=balance, error=str(e))

    balance = distributor.functions.balanceOf(address).call()
    if not expected_success:
        raise UnexpectedClaimSuccess(f"{label}: {function} should have reverted, balance is now {balance}")

    logger.info("Claimed %d tokens for %s", balance, label)
    return ClaimOutcome(function, address, expected_success, succeeded=True, balance=balance)


def run_claim_sequence(chain: ChainDescriptor, first: HexAddress, second: HexAddress) -> list[ClaimOutcome]:
    """Claim for both addresses, then check neither can claim again.

    A refused claim that should have worked is logged and recorded.
    A claim that should have been refused but went through is a hard failure.

    :raise UnexpectedClaimSuccess:
        When a second claim for the same address succeeds
    """
    return [
        _claim(chain, "claimTokensTest", first, True, "1st address"),
        _claim(chain, "claimTokensTest", first, False, "1st address"),
        _claim(chain, "claimTokensTest", second, True, "2nd address"),
        _claim(chain, "claimTokensDelegate", second, False, "2nd address"),
    ]


def execute(chains: list[ChainDescriptor], wallet: HotWallet, options: ExecuteOptions) -> DistributionReport:
    """Run the cross-chain distribution and the claim sequence.

    Both chains must have been through :py:func:`deploy`.

    Steps, each waiting for the previous one to be mined:

    1. Configure the source distributor and the destination calculator to know each other
    2. Create five throwaway addresses and encode ``([last, first], supply)``
    3. Compute the bridge fee of both legs
    4. Call ``calculateTokenDistribution()`` with the fees attached
    5. Wait for the distributions to arrive back on the source chain
    6. Check the supply in the ``RequestedDistributions`` event
    7. Claim for both addresses and check second claims are refused

    :param chains:
        All known chains. ``options.source`` and ``options.destination`` must be among them.

    :param wallet:
        Operator wallet. Transactions go out through the per-chain wallets bound by :py:func:`deploy`.

    :raise TokenSupplyMismatch:
        The event carries a different supply than we sent

    :raise CrossChainTimeout:
        The calculator's answer did not arrive in time

    :raise UnexpectedClaimSuccess:
        An address could claim twice
    """
    source = options.source
    destination = options.destination

    if len(options.args) != 4:
        raise ValueError(f"Expected args [l1_chain, l2_chain, l1_contract, l2_contract], got {options.args}")

    l1_chain, l2_chain, l1_contract, l2_contract = options.args

    known = [id(c) for c in chains]
    assert id(source) in known and id(destination) in known, "Source and destination must be in the chain list"
    source.require_deployed()
    destination.require_deployed()

    logger.info("Running distribution %s -> %s as %s", source.name, destination.name, wallet.address)

    layer_two_chain, layer_one_chain = configure_layers(source, destination, l1_chain, l2_chain, l1_contract, l2_contract)

    wallets = generate_wallets(GENERATED_WALLET_COUNT)
    generated_addresses = [w.address for w in wallets]
    addresses = [generated_addresses[-1], generated_addresses[0]]

    token_supply = options.token_supply
    payload = encode_distribution_payload(addresses, token_supply)

    fee_source, fee_remote, total_fee = calculate_round_trip_fee(options.calculate_bridge_fee, source, destination)
    logger.info("Bridge fees: %d + %d = %d wei", fee_source, fee_remote, total_fee)

    calc_receipt = _transact(source, source.distributor.functions.calculateTokenDistribution(payload), value=total_fee)

    distributions = wait_for_distributions(source, addresses, options.wait)
    logger.info(
        "******  token distributions: address1 = %d, address2 = %d ******",
        distributions[addresses[0]],
        distributions[addresses[-1]],
    )

    event_payload = decode_requested_distributions(source.distributor, calc_receipt)
    if event_payload.supply != token_supply:
        raise TokenSupplyMismatch(f"tokenSupply mismatch: sent {token_supply}, RequestedDistributions carries {event_payload.supply}")

    report = DistributionReport(
        layer_two_chain=layer_two_chain,
        layer_one_chain=layer_one_chain,
        generated_addresses=generated_addresses,
        addresses=addresses,
        token_supply=token_supply,
        fee_source=fee_source,
        fee_remote=fee_remote,
        calculation_tx_hash=HexBytes(calc_receipt["transactionHash"]),
        distributions=distributions,
    )

    balance_of = source.distributor.functions.balanceOf
    report.balances_before = {a: balance_of(a).call() for a in addresses}
    logger.info(
        "****** Balances of wallets before claim: %d, %d ******",
        report.balances_before[addresses[0]],
        report.balances_before[addresses[1]],
    )

    report.claims = run_claim_sequence(source, addresses[0], addresses[1])

    report.balances_after = {a: balance_of(a).call() for a in generated_addresses}
    logger.info(
        "****** Balances of wallets after claim: %d, %d ******",
        report.balances_after[addresses[0]],
        report.balances_after[addresses[1]],
    )
    return report
