"""Utility modules for cuepoint."""
