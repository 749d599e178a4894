"""Configuration — recipe documents and engine settings."""
