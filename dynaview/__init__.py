"""dynaview: an interactive terminal browser for DynamoDB tables."""

__version__ = "0.1.0"
