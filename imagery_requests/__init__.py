"""Imagery Request Geospatial Validation & Lifecycle Engine.

Accepts customer-submitted Areas of Interest for satellite imagery,
validates and measures their geometry, and governs each request through
a review / quote / fulfilment lifecycle with an append-only status
history and filtered CSV reporting.
"""

__version__ = "0.1.0"
