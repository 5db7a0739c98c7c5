"""Entry point for Smart Folders.

Usage:
    python -m smart_folders            Run the folder-watch daemon
    python -m smart_folders --version  Show version and exit
"""


def main() -> None:
    """Delegate to the daemon CLI."""
    from smart_folders.daemon import main as daemon_main

    daemon_main()


if __name__ == "__main__":
    main()
