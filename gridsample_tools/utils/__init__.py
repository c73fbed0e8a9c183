"""
# Utilities

This module provides utility functions and classes for running external
processes and managing sampling results in the gridsample_tools package.

## Components

- **process**: External process execution and scoped working directories
- **results**: Data structures for storing and saving sampling statistics
"""
