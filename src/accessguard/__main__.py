"""Entry point for 'python -m accessguard' command.

This module allows the AccessGuard CLI to be invoked using
'python -m accessguard'.
"""

from accessguard.cli import main

if __name__ == "__main__":
    main()
