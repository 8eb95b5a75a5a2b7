"""
SerialTerm - interactive terminal for devices on a serial line

Author: SerialTerm Development Team
Date: 2026-10-18
"""

__version__ = "0.1.0"
