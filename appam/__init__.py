"""Plan and apply APRIL reconstruction patches to dpkg packages."""

__version__ = "0.1.0"