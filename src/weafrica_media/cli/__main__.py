"""CLI entry point for weafrica_media.cli module.

Enables execution via: python -m weafrica_media.cli
"""

from weafrica_media.cli.process_uploads import main

if __name__ == "__main__":
    main()
