"""
Tests for the hardened HTTPS download helpers. No network access: sessions
are replaced by stubs returning canned responses.
"""

import ssl

import pytest
import requests

import debian_server_setup as dss


def make_response(url, content=b"", status_code=200, history=()):
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response._content = content
    response._content_consumed = True
    response.history = list(history)
    return response


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def test_tls_adapter_enforces_tls12_floor():
    adapter = dss.TLSAdapter()

    context = adapter.poolmanager.connection_pool_kw["ssl_context"]

    assert context.minimum_version == ssl.TLSVersion.TLSv1_2
    assert context.verify_mode == ssl.CERT_REQUIRED


def test_https_session_mounts_tls_adapter():
    session = dss.create_https_session()

    assert isinstance(session.get_adapter("https://sh.rustup.rs"), dss.TLSAdapter)


def test_download_refuses_plain_http(tmp_path):
    config = dss.AppConfig()
    session = StubSession(make_response("http://example.com/install.sh"))

    with pytest.raises(dss.NetworkError, match="non-HTTPS"):
        dss.download_file("http://example.com/install.sh", tmp_path / "x.sh", config, session)

    assert session.calls == []


def test_download_refuses_https_to_http_redirect(tmp_path):
    config = dss.AppConfig()
    redirect = make_response("https://sh.rustup.rs", status_code=302)
    response = make_response("http://mirror.example/rustup-init.sh", b"rustup", history=[redirect])

    with pytest.raises(dss.NetworkError, match="non-HTTPS"):
        dss.download_file(
            "https://sh.rustup.rs", tmp_path / "rustup-init.sh", config, StubSession(response)
        )


def test_download_writes_readable_file(tmp_path):
    config = dss.AppConfig(DOWNLOAD_TIMEOUT=5)
    session = StubSession(make_response("https://sh.rustup.rs", b"#!/bin/sh\nrustup\n"))
    destination = tmp_path / "rustup-init.sh"

    assert dss.download_file("https://sh.rustup.rs", destination, config, session) == destination

    assert destination.read_bytes() == b"#!/bin/sh\nrustup\n"
    assert destination.stat().st_mode & 0o777 == 0o644
    assert session.calls[0][1]["timeout"] == 5


def test_download_http_error_is_network_error(tmp_path):
    config = dss.AppConfig()
    session = StubSession(make_response("https://sh.rustup.rs", status_code=503))

    with pytest.raises(dss.NetworkError):
        dss.download_file("https://sh.rustup.rs", tmp_path / "x.sh", config, session)


def test_fetch_bytes_wraps_transport_errors():
    config = dss.AppConfig()
    session = StubSession(error=requests.ConnectionError("connection reset"))

    with pytest.raises(dss.NetworkError, match="connection reset"):
        dss.fetch_bytes("https://static.rust-lang.org/x.sha256", config, session)


def test_fetch_bytes_returns_content():
    config = dss.AppConfig()
    session = StubSession(make_response("https://packages.clickhouse.com/key", b"KEY"))

    assert dss.fetch_bytes("https://packages.clickhouse.com/key", config, session) == b"KEY"


def test_make_download_dir_is_world_readable(tmp_path):
    config = dss.AppConfig(TEMP_DIR=str(tmp_path))

    workdir = dss.make_download_dir(config, "rustup")

    assert workdir.parent == tmp_path
    assert workdir.name.startswith("debian_server_setup_rustup_")
    assert workdir.stat().st_mode & 0o777 == 0o755
