"""
Order service package: checkout, order queries and the status workflow.
"""
