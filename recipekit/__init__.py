"""recipekit — declarative software recipe execution engine."""

__version__ = "0.1.0"
