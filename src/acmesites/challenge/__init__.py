"""Challenge selection, proof derivation and external verification."""
