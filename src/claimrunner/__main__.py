"""Allow ``python -m claimrunner``."""

from claimrunner.cli import app

if __name__ == "__main__":
    app()
