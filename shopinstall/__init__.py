"""
shopinstall — runtime-aware installer for Composer-distributed shops.

Detects a usable container engine or local toolchain, then materializes
the shop package into a target directory with retrying strategies and
a backup-first publish.
"""

__version__ = "0.1.0"
