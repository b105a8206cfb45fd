"""HTTP service for card tap redirects."""
