"""
Tile Index Test Suite

Structure:
- unit/: decoders, index map, candidate resolution, modes, helpers
- integration/: loader against real files and fake transports, HTTP API
- fixtures/: encoders that build synthetic PPM/GLB/b3dm/glTF inputs
"""
