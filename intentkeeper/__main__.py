"""Entry point for ``python -m intentkeeper``."""

from intentkeeper.cli.commands import app

if __name__ == "__main__":
    app()
