"""Syntax tree and configuration models."""
