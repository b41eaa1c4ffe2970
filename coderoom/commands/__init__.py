"""Command implementations for the coderoom CLI."""
