"""Per-phone outreach sessions and phone number normalization."""
