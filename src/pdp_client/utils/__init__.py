"""Shared utilities: file access, target parsing, logging context, policy loading."""
