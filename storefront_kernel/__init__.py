"""
Storefront Kernel - order fulfillment and inventory consistency

The transactional core of the phone storefront:
- Inventory ledger (single writer of stock, append-only movement log)
- Cart aggregation with totals kept equal to the sum of lines
- Order state machine with compensating stock movements
- Row-locked, all-or-nothing mutations
"""

__version__ = "0.1.0"
