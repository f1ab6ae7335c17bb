"""alertwatch engine: alert validation, execution, classification and history."""

__version__ = "0.1.0"
