"""Cloud catcher client

Mirrors a local interactive session to a remote viewer over a websocket:
- a compact hex packet codec, kept separate from the session state machine
- throttled display frames, one per coalescing window
- checksum-reconciled file edits in both directions

Everything runs on one asyncio loop; there is no shared state to lock.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
