"""State layer.

This package is the single source of truth for how inbound realtime events
are merged into canonical per-order state. Only the reconciler mutates it.
"""
