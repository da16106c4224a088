"""AuthLink — two-factor authentication core for the ISP operator dashboard."""

__version__ = "0.1.0"
