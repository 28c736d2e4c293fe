"""BookTender: catalog physical books from shelf photos."""

__version__ = "0.1.0"
