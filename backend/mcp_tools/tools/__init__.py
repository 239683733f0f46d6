"""Tracker clients and tool implementations."""
