"""Request identity."""
