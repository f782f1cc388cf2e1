"""Version information for precompile-client."""

__version__ = "0.3.0"
