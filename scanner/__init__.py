"""Robots.txt census: which crawler user-agents do popular sites disallow?"""

__version__ = "0.1.0"
