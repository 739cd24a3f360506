"""Adapters for Ward Tracker (primary record stores and the document mirror)."""
