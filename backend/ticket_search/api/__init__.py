# @TASK S3-T3.0 - API package

"""Ticket search REST API package.

Sub-modules expose FastAPI routers:
- search: ranked full-text ticket search
"""
