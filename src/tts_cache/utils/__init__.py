"""
Utility Modules for tts-cache.

    - audio.py: WAV encoding/decoding and joining
    - text.py: Text normalization and generation eligibility
    - timeit.py: Performance measurement utilities
"""
