"""Setuptools build hooks for einplan."""

from __future__ import annotations

from setuptools import setup

# Metadata lives in pyproject.toml; the package is pure Python.
setup()
