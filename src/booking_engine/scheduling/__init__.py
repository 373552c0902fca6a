"""Periodic lead schedulers: call retries, exhausted-retry outreach and scarcity callbacks."""
