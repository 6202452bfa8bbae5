"""Calendar items, their iCalendar encoding and CalDAV synchronization."""
