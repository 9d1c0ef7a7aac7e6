"""
Value Observation (valueobs) Package

Compile-time generation of change-observable record classes.

ARCHITECTURAL GUARANTEE:
------------------------
The transformation engine (classifier, accessors, augmenter, validator)
knows NOTHING about:
    - How source text is parsed
    - How generated members are rendered
    - How observers are scheduled

It maps a Declaration model to an Expansion model.

Parsing (source_parser) and rendering (backends) are separate layers.
Generated code depends only on valueobs.runtime.
"""

__version__ = "0.1.0"
