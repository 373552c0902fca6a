"""Resource schedules, booked appointments and slot search."""
