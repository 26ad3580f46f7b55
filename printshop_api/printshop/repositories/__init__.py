"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each domain area. They never
commit: the caller's AsyncSession is the transaction handle, and the service
that opened the transaction decides when to commit or roll back.
"""
