"""Command line interface for Tar-Docka."""
