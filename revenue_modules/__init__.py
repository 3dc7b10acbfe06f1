"""Business modules built on the revenue kernel."""
