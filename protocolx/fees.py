"""Cross-chain bridge fee calculation.

Relaying a message through Axelar is paid upfront on the source chain,
in the source chain native token, as ``value`` attached to the transaction
that sends the message. The distribution flow sends a message both ways,
so it pays for two legs.

A bridge fee calculator is any callable ``(source, destination) -> int``
returning the fee in wei:

- :py:func:`create_fixed_fee_calculator` for local development chains,
  where relaying is free or priced by a constant

- :py:class:`AxelarGasFeeEstimator` for testnet and mainnet, asking the
  `Axelar GMP API <https://docs.axelar.dev/dev/gas-service/pay-gas>`__

Example::

    from protocolx.fees import AxelarGasFeeEstimator, create_gmp_session

    estimator = AxelarGasFeeEstimator(create_gmp_session("testnet"))
    fee = estimator(source_chain, destination_chain)
"""

import logging
from dataclasses import dataclass
from typing import Callable

from requests import Session
from requests.adapters import HTTPAdapter
from requests_ratelimiter import LimiterAdapter
from urllib3.util.retry import Retry

from protocolx.chain import ChainDescriptor

logger = logging.getLogger(__name__)

#: Callable computing the bridge fee in wei for a message from the first chain to the second
BridgeFeeCalculator = Callable[[ChainDescriptor, ChainDescriptor], int]

#: Axelar GMP API per environment
AXELAR_GMP_API_URLS: dict[str, str] = {
    "testnet": "https://testnet.api.gmp.axelarscan.io",
    "mainnet": "https://api.gmp.axelarscan.io",
}

#: Default gas limit we pay for on the destination chain
DEFAULT_GAS_LIMIT = 700_000

#: Safety margin over the estimated fee
DEFAULT_GAS_MULTIPLIER = 1.1

#: Default number of retries for API requests
DEFAULT_RETRIES = 5

#: Default backoff factor for retries (seconds)
DEFAULT_BACKOFF_FACTOR = 0.5

#: Stay well below the public API rate limit
DEFAULT_REQUESTS_PER_SECOND = 2.0


class GMPSession(Session):
    """A :py:class:`requests.Session` that carries the Axelar GMP API URL.

    Use :py:func:`create_gmp_session` to create instances.
    """

    #: Axelar GMP API base URL
    api_url: str

    def __init__(self, api_url: str = AXELAR_GMP_API_URLS["testnet"]):
        super().__init__()
        self.api_url = api_url

    def __repr__(self) -> str:
        return f"<GMPSession api_url={self.api_url!r}>"


def create_gmp_session(
    environment: str = "testnet",
    retries: int = DEFAULT_RETRIES,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND,
) -> GMPSession:
    """Create a rate limited session with retries for the Axelar GMP API.

    :param environment:
        ``testnet`` or ``mainnet``
    """
    assert environment in AXELAR_GMP_API_URLS, f"Unknown Axelar environment {environment}, use one of {list(AXELAR_GMP_API_URLS)}"

    session = GMPSession(api_url=AXELAR_GMP_API_URLS[environment])

    # The API is POST only
    retry_policy = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        respect_retry_after_header=True,
        allowed_methods=Retry.DEFAULT_ALLOWED_METHODS | frozenset(["POST"]),
    )

    adapter: HTTPAdapter = LimiterAdapter(
        per_second=requests_per_second,
        max_retries=retry_policy,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def create_fixed_fee_calculator(fee: int) -> BridgeFeeCalculator:
    """Bridge fee calculator returning the same fee for every direction.

    :param fee:
        Fee in wei, e.g. ``0`` on a local chain whose relayer does not charge
    """
    assert isinstance(fee, int) and not isinstance(fee, bool), f"Fee must be int wei, got {type(fee)}"
    if fee < 0:
        raise ValueError(f"Bridge fee cannot be negative: {fee}")

    def _calculate(source: ChainDescriptor, destination: ChainDescriptor) -> int:
        logger.info("Bridge fee %s -> %s: %d wei (fixed)", source.name, destination.name, fee)
        return fee

    return _calculate


def _parse_fee(data) -> int:
    if isinstance(data, dict):
        data = data.get("result", data.get("fee"))

    if isinstance(data, bool) or data is None:
        raise ValueError(f"Could not read a fee from the GMP API response: {data!r}")

    try:
        fee = int(str(data))
    except ValueError as e:
        raise ValueError(f"Could not read a fee from the GMP API response: {data!r}") from e

    if fee < 0:
        raise ValueError(f"GMP API returned a negative fee: {fee}")
    return fee


@dataclass(slots=True)
class AxelarGasFeeEstimator:
    """Estimate bridge fees with the Axelar GMP API ``estimateGasFee`` method.

    Instances are :py:data:`BridgeFeeCalculator` callables.
    """

    #: Session from :py:func:`create_gmp_session`
    session: GMPSession

    #: Gas limit of the message execution on the destination chain
    gas_limit: int = DEFAULT_GAS_LIMIT

    #: Multiplier applied by the API to its base estimate
    gas_multiplier: float = DEFAULT_GAS_MULTIPLIER

    #: HTTP timeout, seconds
    timeout: float = 30.0

    def __call__(self, source: ChainDescriptor, destination: ChainDescriptor) -> int:
        return self.estimate(source, destination)

    def estimate(self, source: ChainDescriptor, destination: ChainDescriptor) -> int:
        """Ask the fee of one message from ``source`` to ``destination``.

        :return:
            Fee in wei of the source chain native token

        :raise requests.HTTPError:
            The API keeps failing after retries

        :raise ValueError:
            The API response does not contain a non-negative fee
        """
        body = {
            "method": "estimateGasFee",
            "sourceChain": source.name,
            "destinationChain": destination.name,
            "gasLimit": self.gas_limit,
            "gasMultiplier": self.gas_multiplier,
            "sourceTokenSymbol": source.token_symbol,
        }
        response = self.session.post(self.session.api_url, json=body, timeout=self.timeout)
        response.raise_for_status()
        fee = _parse_fee(response.json())
        logger.info(
            "Bridge fee %s -> %s: %d wei %s (gas limit %d, multiplier %s)",
            source.name,
            destination.name,
            fee,
            source.token_symbol,
            self.gas_limit,
            self.gas_multiplier,
        )
        return fee


def create_bridge_fee_calculator(fixed_fee: str | None, environment: str = "testnet") -> tuple[BridgeFeeCalculator, str]:
    """Pick the bridge fee calculator from script settings.

    :param fixed_fee:
        Fee in wei as text, e.g. from ``BRIDGE_FEE``. Unset or blank uses the GMP API.

    :param environment:
        Axelar environment of the GMP API

    :return:
        Tuple (calculator, human readable description)
    """
    if fixed_fee is not None and fixed_fee.strip():
        try:
            fee = int(fixed_fee.strip())
        except ValueError as e:
            raise ValueError(f"Bridge fee must be an integer amount in wei, got {fixed_fee!r}") from e
        return create_fixed_fee_calculator(fee), f"fixed {fee} wei"

    return AxelarGasFeeEstimator(create_gmp_session(environment)), f"Axelar GMP API ({environment})"


def calculate_round_trip_fee(
    calculate_bridge_fee: BridgeFeeCalculator,
    source: ChainDescriptor,
    destination: ChainDescriptor,
) -> tuple[int, int, int]:
    """Fees for a message going out and its answer coming back.

    :return:
        Tuple (outbound fee, return fee, total)

    :raise ValueError:
        If a calculator gave a negative fee
    """
    fee_source = int(calculate_bridge_fee(source, destination))
    fee_remote = int(calculate_bridge_fee(destination, source))
    for direction, fee in ((f"{source.name} -> {destination.name}", fee_source), (f"{destination.name} -> {source.name}", fee_remote)):
        if fee < 0:
            raise ValueError(f"Negative bridge fee {fee} for {direction}")
    return fee_source, fee_remote, fee_source + fee_remote
