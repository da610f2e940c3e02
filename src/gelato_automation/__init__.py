"""Gelato automation toolkit: submit conditional tasks from a Gnosis Safe proxy."""

__version__ = "0.1.0"
