"""roomrag: retrieval-augmented question answering over chat rooms."""

__version__ = "0.1.0"
