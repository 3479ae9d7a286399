"""
Trade Kernel - order pricing and inventory preview foundation.

Immutable value objects and domain types for commodity order pricing:
- Money with ISO 4217 precision
- Materials, customer contracts and rate specifications
- Inventory batches and stock levels
- Order lines and override audit records
- Typed exceptions and structured logging
"""

__version__ = "0.1.0"
