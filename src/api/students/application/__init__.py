"""Application layer for the students bounded context."""
