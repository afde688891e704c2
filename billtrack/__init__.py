"""
Billtrack: local time tracking and timesheets for freelancers.

Projects carry an hourly rate, a single persistent timer records work,
and timesheets and reports turn entries into billable amounts.
"""

__version__ = "0.1.0"
