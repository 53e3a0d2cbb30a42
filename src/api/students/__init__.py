"""Students bounded context.

Enrollment, records maintenance and status changes for students, scoped
per tenant. Every change is written to the transactional outbox together
with the student row.
"""
