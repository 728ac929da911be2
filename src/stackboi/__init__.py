"""Keep stacks of dependent git branches in sync after merges."""
