"""Voice and chat agents configured per business account."""
