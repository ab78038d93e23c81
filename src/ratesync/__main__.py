# src/ratesync/__main__.py
"""Entry point for ``python -m ratesync``."""
from ratesync.app import main

if __name__ == "__main__":
    main()
