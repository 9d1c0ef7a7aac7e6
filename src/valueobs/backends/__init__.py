"""Backends for valueobs output generation (Python source)."""

from .python_generator import expand_file, expand_source, generate_python, save_python_file

__all__ = ["expand_file", "expand_source", "generate_python", "save_python_file"]
