"""Live fan-out of ledger changes over WebSocket and Redis."""
