"""
sitequota

Plan resolution, limit computation and usage aggregation for site,
pageview and team-member quotas.
"""

__version__ = "0.1.0"
