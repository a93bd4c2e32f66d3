# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Bundled roster files, loaded with ``importlib.resources``."""
