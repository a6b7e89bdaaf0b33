"""Core pipeline: manifest building, diffing, operation building and the deploy flow."""
