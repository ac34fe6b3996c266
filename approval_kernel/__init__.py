"""
Approval Kernel - governance and wallet-hold settlement core

Intercepts sensitive catalogue changes and routes them through a
single-decision approval workflow with:
- Deterministic business impact and sensitivity classification
- Advisory approver routing
- Wallet holds escrowed while a request is pending
- Exactly-once settlement or release on decision
- Bulk decisions with per-item partial failure
- Derived audit trails and statistics
"""

__version__ = "0.1.0"
