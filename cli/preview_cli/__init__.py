"""Live Preview CLI: watch a component file and drive its preview."""

__version__ = "0.1.0"
