"""Shared configuration and observability packages."""
