"""2D game building blocks: XPBD soft-body physics, camera, sprite and texture types, image decoding and profiling."""

__version__ = "0.1.0"