"""Delay pipeline domain.

This package holds:
- the value types exchanged between pipeline steps
- the sequenced, retried delay pipeline itself
- the execution runtime boundary used to start runs and query their status

The branch that decides whether a notification is produced lives in exactly
one place (`DelayPipeline.run`) and is re-derived on every execution.
"""

__all__: list[str] = []
