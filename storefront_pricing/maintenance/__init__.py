"""
One-off catalog maintenance tools: price normalization and price audits.
"""
