"""
Storefront backend package.

REST API for catalog browsing, wishlist, checkout and order management.
"""

__version__ = "1.0.0"
