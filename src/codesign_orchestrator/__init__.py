"""
codesign-orchestrator — package root

File: src/codesign_orchestrator/__init__.py

Purpose
- Drive the rcodesign sign → notarize → staple pipeline over one or more
  Apple artifacts with bounded concurrency and aggregated failure reporting.

Import boundary rules
- No side effects at import time (no config loading, no logging init).
- The console script imports the CLI lazily so exit-code routing works even
  when an import fails.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
