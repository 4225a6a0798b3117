"""media-supervisor entry point.

Supports: python -m media_supervisor
"""

from .app import main

if __name__ == "__main__":
    main()
