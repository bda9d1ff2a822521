"""TriviaDuel: trivia quiz backend with asynchronous head-to-head challenges."""

__version__ = "1.0.0"
