"""YieldSync: multi-pool yield aggregation vault.

Share/NAV accounting, APY-ranked pool allocation and harvest fee computation.
"""

__version__ = "0.1.0"
