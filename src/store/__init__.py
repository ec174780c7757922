"""Versioned state storage layer.

This module holds live items, their commit history, access rules,
and point-in-time reconstruction for one flow run.
"""
