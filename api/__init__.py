"""HTTP surface for speech sessions, report intake and cluster escalation."""
