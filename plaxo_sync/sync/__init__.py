"""Contact model, parsing, photos and the sync orchestrator."""
