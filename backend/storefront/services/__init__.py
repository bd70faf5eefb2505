"""
Business services package.

Each service package pairs a repository (data access) with a service
(business rules) for one area of the storefront.
"""
