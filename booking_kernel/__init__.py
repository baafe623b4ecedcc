"""
Booking Kernel

An in-memory, per-event serialized core for event vendor booking with:
- Duplicate-protected booking requests
- Atomic acceptance into vendor assignments
- Vendor lifecycle, payments and proof-gated tasks
- Category budget allocation derived from vendor spend
"""

__version__ = "0.1.0"
