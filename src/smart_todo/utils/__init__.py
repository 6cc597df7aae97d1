"""Shared helpers for smart-todo."""
