"""Arris S33 support over HNAP.

The S33 doesn't serve its status pages as HTML tables the way the SB8200 does; the web UI pulls everything over a JSON
flavored HNAP API instead. That's actually nicer to scrape once you get past the login dance.
"""
