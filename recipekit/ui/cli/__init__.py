"""CLI command groups registered on the root ``recipekit`` group."""
