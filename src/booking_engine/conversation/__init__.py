"""Outbound voice call placement through the external conversation engine."""
