"""
Ledger Store - Source Package

A flat-file store for client transactions: one delimited text file,
no database engine.

DESIGN PRINCIPLES:
1. The file on disk is always a complete, valid store
2. One writer at a time; readers never block
3. Nothing is physically deleted
4. Clients are derived from transactions, never stored twice
"""

__version__ = "1.0.0"
__author__ = "Ledger Store Team"
