"""Xdebsync: synchronise xdeb package lists from APT and custom repositories."""
