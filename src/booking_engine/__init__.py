"""
Availability & outreach scheduling engine.

Turns resource schedules into bookable slots and drives leads through the
call-retry and messaging outreach lifecycle.
"""

__version__ = "0.1.0"
