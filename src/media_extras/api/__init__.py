"""External HTTP access.

Submodules:
    http -- Streaming image download via httpx
"""
