"""
Property Returns

Time-value-of-money returns for leveraged real estate and loan-funded
bond investments.
"""

__version__ = "0.1.0"
