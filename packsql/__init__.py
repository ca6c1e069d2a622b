"""
PackSQL

Schema slicing and self-healing text-to-SQL.
"""

__version__ = "0.1.0"
