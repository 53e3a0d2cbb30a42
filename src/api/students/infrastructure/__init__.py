"""Infrastructure layer for the students bounded context."""
