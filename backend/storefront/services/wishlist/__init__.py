"""
Wishlist service package.
"""
