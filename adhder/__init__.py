"""ADHDer - shame-safe task tracking core.

Filters, grouping, recurrence, optimistic updates and renegotiation
for a brain-dump-to-task workflow, plus the small API backend they
talk to.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
