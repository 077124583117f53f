"""
KitBuilder: assemble drum kits from SampleFocus or Freesound.
"""

__version__ = "1.0.0"
