"""ChainPulse: chainhook webhook ingestion, activity ledger and leaderboard."""

__version__ = "0.1.0"
