"""Tests for the Flask exposition layer."""

import json
import threading
import time

import pytest

from conftest import FakeRunner, conn_row
from conn_exporter.collectors import ConnectionCollector
from conn_exporter.web import create_app


@pytest.fixture
def collector(cfg, resolver, write_table):
    write_table("tcp", [
        conn_row(0, "0.0.0.0", 22, "0.0.0.0", 0, state="0A"),
        conn_row(1, "10.0.0.5", 22, "10.0.0.9", 51000),
    ])
    return ConnectionCollector(cfg, resolver=resolver, runner=FakeRunner())


@pytest.fixture
def client(cfg, collector):
    return create_app(cfg, collector).test_client()


def test_metrics(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["Content-Type"].startswith("text/plain")
    body = resp.get_data(as_text=True)
    assert body.count("network_connections_info{") == 2
    assert 'direction="incoming"' in body


def test_api_connections(client):
    resp = client.get("/api/connections")
    assert resp.status_code == 200
    data = json.loads(resp.get_data(as_text=True))
    assert [c["source_port"] for c in data] == ["22", "22"]
    assert data[1]["state"] == "ESTABLISHED"
    assert data[1]["interface"] == "eth0"


def test_api_interfaces(client):
    data = json.loads(client.get("/api/interfaces").get_data(as_text=True))
    assert data["primary"] == "eth0"
    assert data["addresses"]["10.0.0.6"] == "eth0"


def test_index(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert b"/metrics" in resp.data


def test_scrape_timeout(cfg, collector):
    gate = threading.Event()
    real = collector.records

    def slow():
        gate.wait(5)
        return real()

    collector.records = slow
    cfg.scrape_timeout = 0.05
    client = create_app(cfg, collector).test_client()
    try:
        resp = client.get("/metrics")
        assert resp.status_code == 503
        assert b"timed out" in resp.data
    finally:
        gate.set()


def test_hung_pass_refuses_new_work(cfg, collector):
    gate = threading.Event()
    calls = []
    real = collector.records

    def slow():
        calls.append(1)
        gate.wait(5)
        return real()

    collector.records = slow
    cfg.scrape_timeout = 0.05
    client = create_app(cfg, collector).test_client()
    try:
        assert client.get("/metrics").status_code == 503
        resp = client.get("/api/connections")
        assert resp.status_code == 503
        assert b"still running" in resp.data
        assert len(calls) == 1
    finally:
        gate.set()


def test_recovers_after_hung_pass_finishes(cfg, collector):
    gate, finished = threading.Event(), threading.Event()
    real = collector.records

    def slow():
        gate.wait(5)
        try:
            return real()
        finally:
            finished.set()

    collector.records = slow
    cfg.scrape_timeout = 0.05
    client = create_app(cfg, collector).test_client()
    assert client.get("/metrics").status_code == 503
    collector.records = real
    gate.set()
    assert finished.wait(5)

    cfg.scrape_timeout = 5.0
    for _ in range(50):
        resp = client.get("/metrics")
        if resp.status_code == 200:
            break
        time.sleep(0.02)
    assert resp.status_code == 200
    assert b"network_connections_info{" in resp.data
