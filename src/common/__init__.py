"""Shared configuration and logging for the converse server."""
