"""Command line interface (``python -m sheets2posts.cli``)."""
