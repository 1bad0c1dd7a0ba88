"""CropShield — parametric crop insurance settled by weather observations."""

__version__ = "0.1.0"
