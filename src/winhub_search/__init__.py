"""Resolve Windows software names to winget / Chocolatey install commands."""

__version__ = "0.1.0"
