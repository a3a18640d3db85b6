"""
EthosView caching and freshness core.

Tagged read-through cache, scheduled cache warming and threshold alerting for
the EthosView ESG/financial data backend.
"""

__version__ = "1.0.0"
