"""Meeting recordings to transcripts, summaries and tracked issues."""

__version__ = "1.0.0"
