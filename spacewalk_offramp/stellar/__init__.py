from .ledger import StellarLedger

__all__ = ["StellarLedger"]
