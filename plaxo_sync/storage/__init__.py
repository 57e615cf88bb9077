"""Local contact storage."""
