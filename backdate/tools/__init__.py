"""Version-control backends and configuration file handling."""
