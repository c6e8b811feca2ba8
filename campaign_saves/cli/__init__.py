"""Command-line interface for campaign-saves."""
