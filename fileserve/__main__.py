"""Allow ``python -m fileserve``."""

from fileserve.main import run

if __name__ == "__main__":
    run()
