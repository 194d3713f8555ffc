"""Sub-commands of the histmap CLI."""
