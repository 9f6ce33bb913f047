"""Entry point for running filetail as a command.

Usage:
    python -m filetail -F /var/log/app.log
"""

from filetail.cli import main

if __name__ == "__main__":
    main()
