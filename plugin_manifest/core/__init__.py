"""Core domain: models, engine, appliers, persistence and use cases."""
