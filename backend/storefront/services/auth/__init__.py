"""
Authentication service package.
"""
