"""
Paket Bootstrapper - fetches Paket from a NuGet feed and keeps itself current.

This package resolves the latest release of the Paket executable from a NuGet
v2 feed, downloads and unpacks the package, and swaps the payload into place.
The bootstrapper can update its own executable with rollback on failure.
"""

__version__ = "0.1.0"
