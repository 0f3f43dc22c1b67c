from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
import threading
from flask import Flask, Response
import json as stdjson  # <- always available

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

try:
    import orjson as _oj
    def dumps(obj): return _oj.dumps(obj).decode()
except Exception:
    _oj = None
    def dumps(obj): return stdjson.dumps(obj)

from ..config import CFG
from ..collectors import ConnectionCollector
from .ui import render_html

class ScrapeBusy(Exception):
    pass

def create_app(cfg: CFG, collector: ConnectionCollector) -> Flask:
    app = Flask(__name__)
    registry = CollectorRegistry()
    registry.register(collector)
    # scrapes run on a worker so an overrunning pass can be answered with 503
    pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="scrape")
    app.extensions["scrape_pool"] = pool
    overran: list = []  # futures that timed out and are still running
    overran_lock = threading.Lock()

    def bounded(fn):
        with overran_lock:
            overran[:] = [f for f in overran if not f.done()]
            if overran:
                # a hung pass holds the collector lock; queueing more work would only pile up
                raise ScrapeBusy()
            fut = pool.submit(fn)
        try:
            return fut.result(timeout=cfg.scrape_timeout)
        except FutureTimeout:
            with overran_lock:
                overran.append(fut)
            raise

    def overrun(what: str, busy: bool = False) -> Response:
        if busy:
            app.logger.warning("%s refused, an earlier pass is still running", what)
            return Response(f"{what} refused: previous collection still running\n", status=503, mimetype="text/plain")
        app.logger.error("%s did not finish within %.1fs", what, cfg.scrape_timeout)
        return Response(f"{what} timed out after {cfg.scrape_timeout}s\n", status=503, mimetype="text/plain")

    @app.get("/")
    def index():
        return Response(render_html(), mimetype="text/html")

    @app.get("/metrics")
    def metrics():
        try:
            body = bounded(lambda: generate_latest(registry))
        except ScrapeBusy:
            return overrun("scrape", busy=True)
        except FutureTimeout:
            return overrun("scrape")
        return Response(body, content_type=CONTENT_TYPE_LATEST)

    @app.get("/api/connections")
    def api_connections():
        try:
            records = bounded(collector.records)
        except ScrapeBusy:
            return overrun("collection", busy=True)
        except FutureTimeout:
            return overrun("collection")
        return Response(dumps([r.as_dict() for r in records]), mimetype="application/json")

    @app.get("/api/interfaces")
    def api_interfaces():
        try:
            snap = bounded(collector.resolver.snapshot)
        except ScrapeBusy:
            return overrun("interface snapshot", busy=True)
        except FutureTimeout:
            return overrun("interface snapshot")
        return Response(dumps(snap), mimetype="application/json")

    return app
