"""Outbound messaging: template gateway, plain-text fallback channel and message templates."""
