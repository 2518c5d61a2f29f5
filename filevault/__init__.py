"""
FileVault: content-addressed file storage and legacy file migration.
"""
__version__ = "0.1.0"
