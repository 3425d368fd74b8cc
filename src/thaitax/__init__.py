"""Thailand personal income tax calculator."""
