"""alertops — alert lifecycle and routing engine."""
