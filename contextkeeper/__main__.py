# contextkeeper/__main__.py

from contextkeeper.cli import app

if __name__ == "__main__":
    app()
