"""ProtocolX DAO token and run constants."""

#: DAO token name baked into the distributor proxy setup parameters
DAO_TOKEN_NAME = "ProtocolX Dao Token"

#: DAO token symbol baked into the distributor proxy setup parameters
DAO_TOKEN_SYMBOL = "PROX"

#: DAO token decimals passed to the distributor implementation constructor
DAO_TOKEN_DECIMALS = 13

#: Token supply sent in the distribution payload
DEFAULT_TOKEN_SUPPLY = 123_456_790

#: How many throwaway accounts we create per run to fill the payload
GENERATED_WALLET_COUNT = 5

#: Key hashed into the CREATE2 salt of the distributor proxy
PROXY_SALT_KEY = "protocolx"

#: Seconds between checks whether the cross-chain callback has landed.
#:
#: The round trip used to be covered by a fixed 4 second sleep.
DEFAULT_POLL_INTERVAL = 4.0

#: Give up waiting for the cross-chain callback after this many seconds
DEFAULT_CROSS_CHAIN_TIMEOUT = 180.0

#: Paths of the compiled Hardhat artifacts, relative to the artifact root
DAO_TOKEN_DISTRIBUTOR_ARTIFACT = "examples/evm/protocolx/DaoTokenDistributor.sol/DaoTokenDistributor.json"
DAO_DISTRIBUTION_CALCULATOR_ARTIFACT = "examples/evm/protocolx/DaoDistributionCalculator.sol/DaoDistributionCalculator.json"
EXAMPLE_PROXY_ARTIFACT = "examples/evm/Proxy.sol/ExampleProxy.json"
