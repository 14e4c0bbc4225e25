"""CLI layer — argument parsing, user interaction, and error boundary.

This package is the outermost layer of the application.  It may import
from ``core``, ``infra``, ``config`` and ``bootstrap``, but no other
layer may import from ``cli``.
"""
