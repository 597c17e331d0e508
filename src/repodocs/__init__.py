"""Repository sync, evidence-grounded documentation and citation verification."""

__version__ = "0.1.0"
