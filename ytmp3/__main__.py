import argparse

from ytmp3.config import Settings
from ytmp3.logging_config import setup_logging
from ytmp3.web import create_app


def main(argv=None):
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(prog="ytmp3", description="YouTube to MP3 conversion service")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--log-level", default=settings.log_level)
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    app = create_app(settings)
    # threaded: each request is one job; the playlist pool lives inside it
    app.run(host=args.host, port=args.port, debug=False, use_reloader=False, threaded=True)


if __name__ == "__main__":
    main()
