"""In-memory stand-ins for chains and contracts.

The fakes model only the parts of the distributor and the calculator
the distribution flow touches: layer configuration, the cross-chain
callback arriving after a number of reads, and single claims.
"""

import itertools

import pytest
from eth_account import Account
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from protocolx.chain import ChainDescriptor
from protocolx.hotwallet import HotWallet
from protocolx.payload import decode_distribution_payload, encode_distribution_payload

_tx_counter = itertools.count(1)


class FakeEth:
    """The ``web3.eth`` calls our code makes."""

    def __init__(self, chain_id: int = 2500):
        self.chain_id = chain_id
        self.block_number = 1
        self.receipts = {}
        self.transactions = {}
        self.sent_raw = []
        self.code = {}
        self.revert_reason = None
        self.nonce = 0
        self.gas_price = 1

    def get_transaction_count(self, address, block_identifier="latest"):
        return self.nonce

    def wait_for_transaction_receipt(self, tx_hash, timeout=120):
        return self.receipts[HexBytes(tx_hash)]

    def get_transaction(self, tx_hash):
        return self.transactions[HexBytes(tx_hash)]

    def call(self, tx, block_identifier=None):
        if self.revert_reason:
            raise ContractLogicError(f"execution reverted: {self.revert_reason}")
        return b""

    def send_raw_transaction(self, raw):
        self.sent_raw.append(raw)
        return self.add_receipt(status=1)

    def get_code(self, address):
        return self.code.get(address, b"")

    def add_receipt(self, status: int = 1, **extra) -> HexBytes:
        tx_hash = HexBytes(next(_tx_counter).to_bytes(32, "big"))
        self.block_number += 1
        self.receipts[tx_hash] = {
            "transactionHash": tx_hash,
            "blockNumber": self.block_number,
            "status": status,
            "logs": [],
            **extra,
        }
        return tx_hash


class FakeWeb3:
    def __init__(self, chain_id: int = 2500):
        self.eth = FakeEth(chain_id)


class FakeCall:
    """A bound contract function: ``contract.functions.name(*args)``."""

    def __init__(self, contract, fn_name, args):
        self.contract = contract
        self.fn_name = fn_name
        self.args = args

    def call(self):
        return getattr(self.contract, f"view_{self.fn_name}")(*self.args)

    def transact(self, value):
        return getattr(self.contract, f"tx_{self.fn_name}")(*self.args, value=value)


class FakeFunctions:
    def __init__(self, contract):
        self._contract = contract

    def __getattr__(self, name):
        return lambda *args: FakeCall(self._contract, name, args)


class FakeContract:
    def __init__(self, address):
        self.address = address
        self.functions = FakeFunctions(self)


class FakeCalculator(FakeContract):
    """DaoDistributionCalculator on the destination chain."""

    def __init__(self, address, chain_name):
        super().__init__(address)
        self.chain_name = chain_name
        self.layer_one_chain = ""
        self.layer_one_contract = None
        self.zero_share_for = set()

    def tx_configureLayerOne(self, chain, contract, value=None):
        self.layer_one_chain = chain
        self.layer_one_contract = contract

    def view_layerOneChain(self):
        return self.layer_one_chain

    def calculate(self, addresses, supply) -> dict:
        share = supply // len(addresses)
        return {a: 0 if a in self.zero_share_for else share for a in addresses}


class FakeRequestedDistributions:
    def __init__(self, distributor):
        self.distributor = distributor

    def process_receipt(self, receipt, errors=None):
        if receipt["transactionHash"] != self.distributor.calculation_tx_hash:
            return []
        return [{"event": "RequestedDistributions", "args": {"payload": self.distributor.emitted_payload}}]


class FakeEvents:
    def __init__(self, distributor):
        self.distributor = distributor

    def RequestedDistributions(self):
        return FakeRequestedDistributions(self.distributor)


class FakeDistributor(FakeContract):
    """DaoTokenDistributor on the source chain.

    The calculator answer lands after ``delivery_after_reads`` reads of ``distributions()``.
    """

    def __init__(self, address, calculator: FakeCalculator):
        super().__init__(address)
        self.events = FakeEvents(self)
        self.calculator = calculator
        self.layer_two_chain = ""
        self.layer_two_contract = None
        self.pending = None
        self.received_value = None
        self.emitted_payload = None
        self.calculation_tx_hash = None
        self.distributions = {}
        self.balances = {}
        self.claimed = set()
        self.reads = 0

        #: Knobs for misbehaviour
        self.delivery_after_reads = 3
        self.never_deliver = False
        self.allow_double_claim = False
        self.emitted_supply_override = None
        self.refuse_claims_for = set()

    def tx_configureLayerTwo(self, chain, contract, value=None):
        self.layer_two_chain = chain
        self.layer_two_contract = contract

    def view_layerTwoChain(self):
        return self.layer_two_chain

    def tx_calculateTokenDistribution(self, payload, value=None):
        decoded = decode_distribution_payload(payload)
        self.received_value = value
        self.pending = decoded
        supply = decoded.supply if self.emitted_supply_override is None else self.emitted_supply_override
        self.emitted_payload = encode_distribution_payload(list(decoded.addresses), supply)
        return "calculation"

    def view_distributions(self, address):
        self.reads += 1
        if self.pending and not self.never_deliver and self.reads >= self.delivery_after_reads:
            self.distributions.update(self.calculator.calculate(self.pending.addresses, self.pending.supply))
            self.pending = None
        return self.distributions.get(address, 0)

    def _claim(self, address):
        if address in self.refuse_claims_for:
            raise ContractLogicError("execution reverted: Claiming paused")
        if address in self.claimed and not self.allow_double_claim:
            raise ContractLogicError("execution reverted: Already claimed")
        if not self.distributions.get(address):
            raise ContractLogicError("execution reverted: Nothing to claim")
        self.claimed.add(address)
        self.balances[address] = self.balances.get(address, 0) + self.distributions[address]

    def tx_claimTokensTest(self, address, value=None):
        self._claim(address)

    def tx_claimTokensDelegate(self, address, value=None):
        self._claim(address)

    def view_balanceOf(self, address):
        return self.balances.get(address, 0)


class FakeWallet:
    """Per-chain wallet that applies calls to the fake contracts.

    By default a reverting call fails at gas estimation, before anything is broadcast.
    With ``mine_reverts`` it is mined instead and its receipt has status 0.
    """

    def __init__(self, web3: FakeWeb3, address="0x000000000000000000000000000000000000dEaD"):
        self.web3 = web3
        self.address = address
        self.sent = []
        self.mine_reverts = False

    def transact_and_broadcast_with_contract(self, func, gas_limit=None, value=None):
        try:
            result = func.transact(value)
        except ContractLogicError as e:
            if not self.mine_reverts:
                raise
            return self._mine_failed(func, value, e.message.removeprefix("execution reverted: "))
        tx_hash = self.web3.eth.add_receipt(status=1)
        self.sent.append((func.fn_name, func.args, value))
        if result == "calculation":
            func.contract.calculation_tx_hash = tx_hash
        return tx_hash

    def _mine_failed(self, func, value, reason: str) -> HexBytes:
        eth = self.web3.eth
        tx_hash = eth.add_receipt(status=0)
        eth.transactions[tx_hash] = {
            "from": self.address,
            "to": func.contract.address,
            "input": "0x",
            "value": value or 0,
            "gas": 500_000,
        }
        # Replaying the call reverts the same way
        eth.revert_reason = reason
        self.sent.append((func.fn_name, func.args, value))
        return tx_hash


def make_chain(name: str, chain_id: int, index: int) -> ChainDescriptor:
    return ChainDescriptor(
        name=name,
        rpc=f"http://localhost:8500/{index}",
        gateway=f"0x{index + 1:040x}",
        gas_service=f"0x{index + 11:040x}",
        const_address_deployer=f"0x{index + 21:040x}",
        chain_id=chain_id,
    )


def attach_fakes(chain: ChainDescriptor, index: int):
    chain.web3 = FakeWeb3(chain.chain_id)
    chain.wallet = FakeWallet(chain.web3)
    chain.calculator = FakeCalculator(f"0x{index + 31:040x}", chain.name)
    chain.distributor = FakeDistributor(f"0x{index + 41:040x}", chain.calculator)


@pytest.fixture()
def source() -> ChainDescriptor:
    return make_chain("Avalanche", 2500, 0)


@pytest.fixture()
def destination() -> ChainDescriptor:
    return make_chain("Fantom", 2501, 1)


@pytest.fixture()
def deployed_chains(source, destination) -> list[ChainDescriptor]:
    """Both chains with fake contracts, the destination calculator answering to the source distributor."""
    attach_fakes(source, 0)
    attach_fakes(destination, 1)
    source.distributor.calculator = destination.calculator
    return [source, destination]


@pytest.fixture()
def hot_wallet() -> HotWallet:
    return HotWallet(Account.create())


@pytest.fixture()
def fake_web3() -> FakeWeb3:
    return FakeWeb3()
