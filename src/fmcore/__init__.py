"""
Feature Model Core (fmcore) Package

In-memory representation of feature models (feature tree, cross-tree
constraints, imports), a reader for the UVL textual notation, and a
structure-preserving anonymizer.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - Diagram rendering or layout
    - Configuration solving / SAT evaluation
    - Editors, views or any other UI

Readers report problems as diagnostics; they do not print.
"""

__version__ = "0.1.0"
