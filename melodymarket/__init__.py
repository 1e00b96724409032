"""
MelodyMarket: a local catalog-and-purchase storefront for digital music.
"""

__version__ = "0.3.0"
