"""
Reimbursement Kernel

The persistence-backed core of the expense reimbursement application:
- Report lifecycle state machine with two-tier escalation
- Single authorization predicate for every mutating entry point
- Derived report totals kept in step with expense items
- Optimistic concurrency on every status write
"""

__version__ = "0.1.0"
