"""onkey: a guided piano tuner."""

__version__ = "0.1.0"
