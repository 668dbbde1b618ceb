"""Commit planning and execution."""
