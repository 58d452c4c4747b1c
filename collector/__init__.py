"""Ambient noise collector: serial microphone samples to Supabase."""

__version__ = "0.1.0"
