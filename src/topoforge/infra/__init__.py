"""Infrastructure backends."""
