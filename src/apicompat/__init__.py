"""apicompat: semantic-version checks for Go module releases."""

__version__ = "0.3.0"
