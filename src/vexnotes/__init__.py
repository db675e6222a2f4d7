"""VexNotes - semantic index and question answering over a git-hosted note corpus."""

__version__ = "0.1.0"
