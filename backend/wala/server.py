"""Process entry point: serve the application with uvicorn."""

import argparse
import os


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the Wala marketplace server")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8080")))
    parser.add_argument("--profile", default=None, help="overrides APP_PROFILE")
    args = parser.parse_args(argv)
    if args.profile:
        os.environ["APP_PROFILE"] = args.profile

    import uvicorn
    from .main import app

    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
