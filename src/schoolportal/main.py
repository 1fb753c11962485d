"""Application entry point for the school portal backend server."""

from schoolportal.app import App
from schoolportal.config import Config
from schoolportal.logging import setup_logging
from schoolportal.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
