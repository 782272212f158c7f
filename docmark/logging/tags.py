# docmark/logging/tags.py
"""
Central place for logging subsystem tags.

Tags keep log output greppable across extractors and the pipeline.
"""

DISPATCH = "[DISPATCH]"
EXTRACT = "[EXTRACT]"
ARCHIVE = "[ARCHIVE]"
ENRICH = "[ENRICH]"
WORKSPACE = "[WORKSPACE]"
PROVIDER = "[PROVIDER]"
CLI = "[CLI]"
