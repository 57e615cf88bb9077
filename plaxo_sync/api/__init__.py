"""Plaxo REST API client."""
