"""
Backend package for the project tracker API.

This package provides a FastAPI application over a small relational store
of users and projects, plus the helpers that manage project membership.
"""
