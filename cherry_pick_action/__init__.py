"""Backport merged pull requests to release branches by cherry-picking."""

__version__ = "0.1.0"
