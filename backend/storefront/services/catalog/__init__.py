"""
Catalog service package for products and categories.
"""
