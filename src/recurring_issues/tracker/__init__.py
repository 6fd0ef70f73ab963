"""
Issue tracker boundary.

Components:
- models.py: TrackedItem / ItemState, validated from raw API payloads
- errors.py: TrackerError hierarchy
- github_client.py: httpx-based GitHub REST + GraphQL client
"""
