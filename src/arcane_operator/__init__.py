"""Arcane stream operator.

Kubernetes operator that runs Arcane streams: every stream definition is
reconciled into exactly one batch Job built from a job template.
"""

__version__ = "0.1.0"
