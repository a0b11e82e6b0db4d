"""Order management service: catalog, customers, orders and the inventory ledger."""

__version__ = "0.1.0"
