"""
QR Feedback - QR-code lifecycle, validation and feedback collection core
"""

__version__ = "0.1.0"
