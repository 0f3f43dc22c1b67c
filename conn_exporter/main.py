from __future__ import annotations
import argparse, logging, sys
from .config import DEFAULT_TCP_TABLE, DEFAULT_UDP_TABLE, init_cfg_from_args
from .collectors import ConnectionCollector
from .web import create_app, dumps

def parse_args(argv=None):
    ap = argparse.ArgumentParser(description='Export live /proc/net TCP/UDP connections as Prometheus metrics')
    ap.add_argument('--host', type=str, default='0.0.0.0')
    ap.add_argument('--port', type=int, default=None, help='listen port (default: $PORT or 9100)')
    ap.add_argument('--tcp-table', type=str, default=DEFAULT_TCP_TABLE)
    ap.add_argument('--udp-table', type=str, default=DEFAULT_UDP_TABLE)
    ap.add_argument('--no-process-names', action='store_true', help='skip `ss` based process attribution')
    ap.add_argument('--scrape-timeout', type=float, default=10.0, help='seconds before a scrape answers 503')
    ap.add_argument('--log-level', type=str, default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    ap.add_argument('--once', action='store_true', help='print one collection pass as JSON and exit')
    return ap.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    cfg = init_cfg_from_args(args)
    collector = ConnectionCollector(cfg)

    if args.once:
        sys.stdout.write(dumps([r.as_dict() for r in collector.records()]) + "\n")
        return 0

    app = create_app(cfg, collector)
    print(f"[*] Serving metrics on http://{cfg.host}:{cfg.port}/metrics")
    app.run(host=cfg.host, port=cfg.port, debug=False, use_reloader=False)
    return 0

if __name__ == '__main__':
    sys.exit(main())
