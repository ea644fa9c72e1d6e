"""procbench — benchmark external commands and compare their run times."""

__version__ = "0.1.0"
