"""csbot - Cobalt Strike workflow automation.

Replays declarative action workflows against a beacon through an
authenticated remote client, and packs BOF argument buffers.
"""

__version__ = "0.4.0"
