"""Neural Synth - Audio-request API service.

FastAPI service exposing the audio-request record store over HTTP.
"""

__all__: list[str] = []
