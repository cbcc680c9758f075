"""JSON-RPC connection setup."""

import logging

from web3 import HTTPProvider, Web3
from web3.middleware import ExtraDataToPOAMiddleware

from protocolx.utils import get_url_domain

logger = logging.getLogger(__name__)

#: HTTP read timeout for JSON-RPC calls, seconds
DEFAULT_HTTP_TIMEOUT = 60.0


def create_chain_web3(
    json_rpc_url: str,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    expected_chain_id: int | None = None,
) -> Web3:
    """Connect to a chain over HTTP.

    - Injects the proof-of-authority middleware, so local Axelar
      chains and POA testnets with long ``extraData`` work

    :param json_rpc_url:
        Node URL. May contain an API key, so only the domain is logged.

    :param expected_chain_id:
        Crash if the node reports a different chain id.
    """
    web3 = Web3(HTTPProvider(json_rpc_url, request_kwargs={"timeout": timeout}))
    web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    chain_id = web3.eth.chain_id
    if expected_chain_id is not None:
        assert chain_id == expected_chain_id, f"Expected chain {expected_chain_id} at {get_url_domain(json_rpc_url)}, got {chain_id}"

    logger.info("Connected to chain %d at %s", chain_id, get_url_domain(json_rpc_url))
    return web3
