"""Neural Synth - Audio-request record store.

Provides:
- SQLAlchemy model and DB primitives for audio_request_collection
- Record store operations (create, lookup, metadata update, setup)
- Utilities: hashing
"""

__version__ = "0.1.0"
