"""Ingestion layer.

Translates raw inbound transport events into validated models and routes
them to the reconciler.
"""

from pycourier.ingestion.dispatch import EVENT_HANDLERS, EventDispatcher

__all__ = ["EVENT_HANDLERS", "EventDispatcher"]
