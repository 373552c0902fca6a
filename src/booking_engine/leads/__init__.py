"""
Leads, their lifecycle and call attempts.

Keep this package __init__ lightweight; importing ORM models here would map
them as a side effect of importing ``leads.lifecycle``.
"""

__all__: list[str] = []
