"""Test suite for ShipTrack.

This package contains hermetic tests following the pytest framework.
Tests are structured to mirror the shiptrack/ package modules for discoverability.

Testing Philosophy:
    - Use pytest-mock for browser and subprocess isolation
    - Focus coverage on payload recovery, normalization and the extraction policy
    - Avoid external dependencies - all I/O should be mocked
"""
