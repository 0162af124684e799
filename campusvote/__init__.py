"""University election backend: ballots, tallies and a live activity feed."""

__version__ = "0.1.0"
