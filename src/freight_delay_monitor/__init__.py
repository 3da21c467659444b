"""Freight Delay Monitor.

Watches a freight route for traffic-induced delay and notifies the customer
once per monitoring run when the delay exceeds a caller-supplied threshold:

- a sequenced, retried delay pipeline (traffic -> delay -> message -> delivery)
- an in-memory run registry
- a polling reconciliation loop that raises each notification exactly once
"""

__version__ = "0.1.0"

from freight_delay_monitor.config import MonitorSettings

__all__ = ["__version__", "MonitorSettings"]
