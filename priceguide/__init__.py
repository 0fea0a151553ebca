"""Price guide cache core.

Caching and request-coalescing layer that sits between the price guide's
API routes / batch jobs and its expensive upstream sources (pricing APIs,
population-report scrapes, grading-company cert pages).
"""

__version__ = "1.0.0"
