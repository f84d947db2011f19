"""Plugin Manifest — dependency-aware, idempotent asset installer for add-on modules."""

__version__ = "0.1.0"
