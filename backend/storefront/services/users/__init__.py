"""
Administrative user management package.
"""
