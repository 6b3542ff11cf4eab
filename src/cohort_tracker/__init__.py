"""Client-side cache and scoreboard engine for cohort training progress."""

__version__ = "0.1.0"

__all__ = ["__version__"]
