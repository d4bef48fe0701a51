"""
Configuration package for the MDM governance core.
"""

from mdm.config.settings import Settings, get_settings

__all__ = ['Settings', 'get_settings']
