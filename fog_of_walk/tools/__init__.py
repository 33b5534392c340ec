"""Command-line tools built on the rendering pipeline."""
