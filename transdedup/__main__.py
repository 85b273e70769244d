"""
Entry point for running transdedup as a module.

Usage:
    python -m transdedup --help
    python -m transdedup scan --server https://dhis.example.org
    python -m transdedup demo
"""
from .cli import app


if __name__ == "__main__":
    app()
