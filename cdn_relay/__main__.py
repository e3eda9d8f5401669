"""Package entry point for ``python -m cdn_relay``.

Delegates to the CLI's main(), which starts the Slack bot and the file
proxy in one process.
"""

from cdn_relay.cli import main

if __name__ == "__main__":
    main()
