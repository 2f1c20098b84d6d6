"""
ordwallet - Wallet and blockchain backends for OrdDeFi
"""

__version__ = "0.3.0"
