"""
Tracker package: value snapshot and change-detection engine.

This package contains:
- Snapshot store with yearly JSON storage units
- Diff engine for classifying observations and formatting messages
- Failure reporter that suppresses repeated diagnostics
- Tracker service orchestrating one observation per tick
"""

__version__ = "1.0.0"
