import argparse
import sys

from app import create_app
from relay import config
from relay.logger import setup_logger


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Obfuscated-URL fetch relay")
    parser.add_argument("--host", default=config.HOST, help="Interface to bind (default: %(default)s)")
    parser.add_argument("--port", type=int, default=config.PORT, help="Port to listen on (default: %(default)s)")
    parser.add_argument("--debug", action="store_true", help="Run the Flask debug server")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logger = setup_logger(log_file=config.LOG_FILE, level=config.LOG_LEVEL)

    app = create_app()
    logger.info(f"{config.SERVICE_NAME} v{config.VERSION} ({config.APP_ENV}) listening on {args.host}:{args.port}")
    try:
        app.run(host=args.host, port=args.port, debug=args.debug, threaded=True)
    except OSError as e:
        logger.error(f"Failed to bind {args.host}:{args.port}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
