"""
docbatch - keyset-paginated batch processing and bulk writes over MongoDB.
"""

__version__ = "0.1.0"
