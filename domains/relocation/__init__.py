"""
Relocation Domain

Moves top-level entries out of a watched directory once writing has
stopped:
- Path classifier → maps a changed path to the top-level entry it belongs to
- Debounce registry → one quiescence timer per entry, reset on every write
- Relocator → atomic rename into the destination tree on expiry
- Event source / dispatch → watchdog notifications drained into the registry
"""

__all__ = ["classifier", "dispatch", "registry", "relocator", "source"]
