"""Schema-driven sync platform: discovery, auto-mapping, transformation and scheduled pipelines."""

__version__ = "0.1.0"
