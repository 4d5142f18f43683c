"""
Land Registry — parcel records, ownership tokens, three-party verification
and escrowed sale.

Architecture: ParcelRegistry → TokenizationEngine → EscrowSettlement,
with VerifierRegistry gating sale readiness.
Philosophy:  Every operation fully completes or changes nothing.
"""

__version__ = "1.0.0"
