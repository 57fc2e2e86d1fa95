"""
nixpkgs PR Tracker - web back end.

Provides a FastAPI backend with GitHub OAuth login and endpoints that look up
nixpkgs pull requests, their approvals, CI status and release-branch
containment.
"""
