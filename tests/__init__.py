"""Test package for SpectrumSense.

Unit tests cover the hue math, the per-boundary search, the session state
machine, result analysis and the share-token codec. The UI tests run
headlessly using pygame's dummy video driver to avoid opening real windows.
To run these tests, execute ``pytest`` from the project root.
"""
