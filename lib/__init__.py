from .connection import ChatEvent, ConnectionAdapter, EventKind, StrimsConnection

__all__ = ['ChatEvent', 'ConnectionAdapter', 'EventKind', 'StrimsConnection']
