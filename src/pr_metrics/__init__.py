"""GitHub pull request lifecycle metrics generator."""
