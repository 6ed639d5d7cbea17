"""Core configuration, logging and Redis client."""
