"""Core application utilities (configuration, logging, security)."""
