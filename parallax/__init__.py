"""
Parallax - multi-perspective news lens

Collects coverage of a research topic from configurable perspective columns,
scores and deduplicates the articles, and lays out the semantic relationship
graph between the terms of a run.
"""

__version__ = "0.1.0"
