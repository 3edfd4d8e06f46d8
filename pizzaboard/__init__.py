"""Social pizza tracker backend: friendships, groups, visibility and leaderboards."""

__version__ = "0.3.0"
