"""HTTP surface for the progress engine."""
