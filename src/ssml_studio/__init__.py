"""
ssml-studio: SSML generation and text segmentation for Azure Speech.

Turns a plain text plus a set of per-range voice, prosody and style
overrides into nested SSML that the Azure neural TTS endpoint accepts,
and optionally sends it for synthesis.

Key Features:
    - Range-based segments over a mutable source text
    - Character presets stamped onto segments in one step
    - Deterministic, escape-correct markup compiler
    - Azure Speech backend with a quota-aware credential pool
    - FastAPI service and a command line compiler

Example Usage:
    >>> from ssml_studio.ssml import EditingSession
    >>>
    >>> session = EditingSession("Hello world", global_voice="en-US-JennyNeural",
    ...                          global_language="en-US")
    >>> session.select(6, 11)
    >>> session.apply_patch({"voice": "en-US-GuyNeural", "pitch": 5})
    >>> markup = session.compile()
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
