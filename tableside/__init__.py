"""
                Tableside Ordering Client

Client-side core for QR table ordering: session lifecycle, staff-code
verification, cart state, order submission and order status polling
against a remote ordering API, with hybrid Mock/Real service architecture.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
