"""
Storyboard AI - script to character-consistent storyboard images.
"""

__version__ = "1.0.0"
