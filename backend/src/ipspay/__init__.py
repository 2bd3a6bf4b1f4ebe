"""IPS QR payments: payment references, intent ledger and reconciliation."""

__version__ = "0.1.0"
