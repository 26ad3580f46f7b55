"""
Domain services.

Services hold the AsyncSession they were constructed with and pass it to every
repository and sub-service they compose, so one session is one transaction
handle across the whole operation.
"""
