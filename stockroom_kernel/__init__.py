"""
Stockroom Kernel

A single-session inventory and requisition ledger with:
- Product balances kept consistent with an append-only movement log
- Role/permission gating with department-scoped visibility
- Indent (requisition) lifecycle
- Derived statistics recomputed from current state
- Snapshot persistence to a namespaced key/value store
"""

__version__ = "0.1.0"
