"""Filesystem and workspace helpers."""
