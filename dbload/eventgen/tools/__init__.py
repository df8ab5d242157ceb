"""Command line tools for eventgen."""
