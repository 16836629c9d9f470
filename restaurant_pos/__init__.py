"""
                Churre Malcriado Ordering & POS

Backend for a single-store restaurant: customer menu/cart/checkout,
point-of-sale cashier settlement and the shared cash-session ledger.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
