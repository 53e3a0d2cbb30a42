"""Presentation layer for the students bounded context."""
