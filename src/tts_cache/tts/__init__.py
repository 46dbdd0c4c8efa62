"""
Synthesis and Caching Components.

This package provides the building blocks TTSService composes:
    - chunker.py: Byte-bounded text splitting
    - engine.py: Base engine class and factory
    - engines/: Engine implementations (Google Cloud TTS, offline tone)
    - assembler.py: Joining chunk audio into one artifact
    - storage.py: Artifact files, metadata records, status transitions
    - cache.py: In-memory LRU cache of records with TTL
    - concurrency.py: Bound on provider calls in flight
    - singleflight.py: One generation per content id at a time
"""
