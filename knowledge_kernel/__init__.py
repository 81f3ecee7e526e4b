"""
Knowledge Kernel

Persistence, domain types and infrastructure for the fact approval
workflow:
- Closed enums and frozen DTOs for facts, transitions and queue queries
- Flush-only services with optimistic status writes
- Read-only selectors for the approval queue
- Typed exceptions and structured JSON logging
"""

__version__ = "0.1.0"
