"""ProtocolX DAO token distribution across two EVM chains.

- Deploy the upgradable ``DaoTokenDistributor`` and the ``DaoDistributionCalculator``
  on a chain with :py:func:`protocolx.distribution.deploy`

- Run the cross-chain distribution and claim flow with
  :py:func:`protocolx.distribution.execute`
"""
