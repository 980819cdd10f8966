"""
Jobflow Kernel

Pure core of the design-job approval and SLA workflow engine:
- Immutable job records with an append-only timeline
- Approval chains snapshotted at submission time
- Typed, machine-readable errors
- Structured JSON logging
"""

__version__ = "0.1.0"
