"""
Distribution Kernel - pricing cascade and batch stock ledger

A back-office core for a multi-location import/resale business with:
- A three-level location tree (HQ -> Branch -> SubBranch)
- Time-versioned exchange rates frozen into every derived price
- Per-location price derivation with margin stacking and currency rounding
- FIFO-by-expiry stock batches with reservation and atomic transfers
- A transfer request workflow that compensates on failed execution
"""

__version__ = "0.1.0"
