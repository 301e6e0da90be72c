"""Agency inbox workspace.

Cached read model and actions for an agency's conversation inbox:
thread lifecycle, routing rules, saved replies, automations and
preferences, all synchronized through a keyed TTL cache.
"""

__version__ = "0.1.0"
