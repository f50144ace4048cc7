import sys
import logging
import argparse
from livemarks import create_app

log = logging.getLogger('werkzeug')
log.disabled = True
cli = sys.modules['flask.cli']
cli.show_server_banner = lambda *x: None

def main() -> None:
    p = argparse.ArgumentParser(prog="livemarks")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=8073)
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    print(f"LiveMarks starting on http://{args.host}:{args.port}", flush=True)
    app.run(host=args.host, port=args.port, debug=False)

if __name__ == "__main__":
    main()
