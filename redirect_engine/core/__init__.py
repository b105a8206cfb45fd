"""Pure rule matching and selection."""
