"""CLI sub-commands and console helpers."""
