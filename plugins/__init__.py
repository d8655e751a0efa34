"""Bot plugins."""
