"""
Readiness verification for deployed network services.

Polls every registered target, reconciles container state, port
reachability and functional checks into one verdict per target, and
reports which services never became ready and which are actively broken.
"""

__version__ = "0.1.0"
