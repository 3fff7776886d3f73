"""Small helpers shared across Portcullis packages."""
