"""
bookingslots - availability for a business calendar and a weekly work schedule.
"""

__version__ = "0.1.0"
