# phimask/core/__init__.py

"""Core domain models and utilities used across the masking pipeline.

This package provides domain types, exceptions, constants and the pattern
loader shared by the rest of the application.
"""
