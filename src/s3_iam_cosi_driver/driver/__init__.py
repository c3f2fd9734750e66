"""COSI driver facade."""
