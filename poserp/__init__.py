"""Point-of-sale back-office core: branch finances, transactions, suppliers and cached sales sessions."""

__version__ = "0.1.0"