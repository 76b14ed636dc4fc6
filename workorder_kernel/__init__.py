"""
Work Order Kernel

Shared infrastructure for work order (SPK) issuance and payment tracking:
- Typed, coded exceptions
- Structured JSON logging
- Database base classes and session management
- Injectable clock
"""

__version__ = "0.1.0"
