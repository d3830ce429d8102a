"""ctltree: browse remote controllers and their endpoints as a tree."""

__version__ = "0.1.0"
