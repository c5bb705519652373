"""
Solana wallet trade analyzer.
"""

__version__ = "0.1.0"
