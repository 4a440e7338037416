"""acmesites -- ACME certificate automation for hosted custom domains."""

__version__ = "1.0.0"
