"""Core wallet logic: keys, commitments, tree, recovery and policy."""
