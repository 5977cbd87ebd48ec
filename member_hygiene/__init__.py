"""
Membership Data Hygiene

Read-only audit and write-applying repair jobs that keep team membership
records consistent with the per-organization member mirrors used by the
authorization rules.
"""

__version__ = "0.1.0"
