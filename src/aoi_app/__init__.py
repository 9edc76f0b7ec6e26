"""AOI Studio web service."""
