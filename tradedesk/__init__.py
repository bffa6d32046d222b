"""
TradeDesk - Export Trade Back-Office
Order fulfillment consistency engine: orders, inventory, shipments, payments, audit.
"""

__version__ = "1.0.0"
