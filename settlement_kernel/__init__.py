"""
Settlement Kernel

Shared foundation for revenue-share settlement reconciliation:
- Decimal-only money and rate values
- Typed settlement and invoice records
- A single coercion boundary for raw record snapshots
- Structured logging and typed exceptions
"""

__version__ = "0.1.0"
