"""FastAPI dependencies for the students bounded context."""
