"""ShipTrack core package.

This package contains the components of the shipment tracking pipeline:
- browser: Playwright session lifecycle with a fixed client identity
- navigator: the fixed navigate/search sequence with advisory UI steps
- extractor / scraper: DOM reading into the shipment schema with soft failure
- validator: Pydantic schemas, weight parsing and the field-read Watchdog
- locator / normalizer / recovery: consumer-side payload recovery from stdout
- reporter: payload emission, snapshots and record comparison
- logger: Structured JSON logging configuration
- exceptions: Custom exception hierarchy
"""

__version__ = "1.0.0"
