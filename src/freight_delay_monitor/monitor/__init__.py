"""Client-side run tracking.

- `registry`: the record of every started run and its phase
- `observer`: the reconciliation loop that polls the runtime
- `feed`: the notification events raised by the observer
- `service`: the facade used by the HTTP API and the CLI
"""

__all__: list[str] = []
