"""ACME protocol client."""

from acmesites.acme.client import AcmeClient, AcmeResponse, load_or_create_account_key

__all__ = ["AcmeClient", "AcmeResponse", "load_or_create_account_key"]
