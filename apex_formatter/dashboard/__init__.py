"""JSON API dashboard for the Apex-Formatter."""
