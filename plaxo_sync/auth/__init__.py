"""Account credential storage and authentication."""
