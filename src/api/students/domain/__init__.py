"""Domain layer for the students bounded context.

Holds the Student aggregate, its value objects, domain events and the
enrollment policies. Nothing here depends on the database or the web layer.
"""
