"""User-facing interfaces for Shelf."""
