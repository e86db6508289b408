"""
iTweakSuite - iOS configuration tweaks applied through backup restore.

- Per-device workspaces seeded from a bundled template
- Developer disk image lookup, download and mounting
- Staging enabled tweaks and restoring them to the device
- Location simulation
"""

__version__ = "0.1.0"
__author__ = "iTweakSuite Contributors"
