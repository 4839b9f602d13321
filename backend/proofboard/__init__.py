"""ProofBoard creative review backend."""

__version__ = "1.0.0"
