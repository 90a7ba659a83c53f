"""Shared helpers for wt core (I/O, locking, subprocess, time, logging)."""
