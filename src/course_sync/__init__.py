"""course-sync: one-way sync of course content to a deployment platform."""

__version__ = "0.4.0"
