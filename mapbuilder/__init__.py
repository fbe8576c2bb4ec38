"""Map Builder - package modifiable game maps into distributable artifacts.

This package merges a base map (a directory or an archive) with staged file
additions and a compiled map script, producing a script file, a directory
tree, or a single archive.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
