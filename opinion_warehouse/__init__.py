"""
Customer Opinions Data Warehouse

Loads survey answers, web reviews and social comments into a star schema
of shared dimensions and rebuilt-per-run fact tables.
"""

__version__ = "1.0.0"
