"""
Booking availability and constraint engine.

Turns resource working calendars into bookable slots, matches booking
requests to resources, validates them against industry rule sets and drives
bookings through their lifecycle.
"""

__version__ = "0.1.0"
