"""File inventory: fan-out file search across servers with spreadsheet reporting."""

__version__ = "0.3.0"
