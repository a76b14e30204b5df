"""
Contract Watcher

Cross-chain contract activity ingestion: one rate-limited, checkpointed
polling watcher per configured chain.
"""

__version__ = "0.1.0"
