"""
Team-based staff permission feature module.

Resolves a staff member's team memberships into an effective permission set
and manages the assignment lifecycle (assign, remove, role change, bulk
assignment, recalculation) with an audit trail of permission changes.
"""
