import logging
import ssl
from pathlib import Path
from types import SimpleNamespace

import pytest

from easy_add.errors import TransportError
from easy_add.transport import TrustStoreAdapter, build_ssl_context, create_session, open_archive


def test_build_ssl_context_verifies_with_bundled_roots():
    context = build_ssl_context()
    assert context.verify_mode == ssl.CERT_REQUIRED
    assert context.check_hostname
    assert context.cert_store_stats()["x509_ca"] > 0


def test_build_ssl_context_rejects_bad_extra_bundle(tmp_path: Path):
    bogus = tmp_path / "extra.pem"
    bogus.write_text("-----BEGIN CERTIFICATE-----\nnot a certificate\n-----END CERTIFICATE-----\n")
    with pytest.raises(TransportError) as exc:
        build_ssl_context([bogus])
    assert exc.value.context["ca_file"] == str(bogus)


def test_create_session_mounts_trust_store_adapter():
    with create_session() as session:
        adapter = session.get_adapter("https://github.com/")
        assert isinstance(adapter, TrustStoreAdapter)
        assert adapter.poolmanager.connection_pool_kw["ssl_context"] is adapter.ssl_context
        assert session.headers["User-Agent"].startswith("easy-add/")


def test_open_archive_streams_body(archive_server):
    archive_server.files["/app.tar.gz"] = b"archive bytes"
    with create_session() as session:
        with open_archive(archive_server.url("/app.tar.gz"), session) as stream:
            assert stream.read(7) == b"archive"
            assert stream.read() == b" bytes"
    assert archive_server.requests == ["/app.tar.gz"]


def test_open_archive_non_success_status(archive_server):
    with create_session() as session:
        with pytest.raises(TransportError) as exc:
            with open_archive(archive_server.url("/missing.zip"), session):
                pytest.fail("body must not be handed out for a 404")
    assert exc.value.status == 404
    assert exc.value.context["url"].endswith("/missing.zip")


def test_open_archive_connection_failure(monkeypatch):
    monkeypatch.setenv("NO_PROXY", "127.0.0.1")
    monkeypatch.setenv("no_proxy", "127.0.0.1")
    with create_session() as session:
        with pytest.raises(TransportError) as exc:
            with open_archive("http://127.0.0.1:1/app.zip", session, timeout=5):
                pass
    assert exc.value.status is None


def test_build_ssl_context_warns_without_system_trust_store(monkeypatch, tmp_path: Path, caplog):
    caplog.set_level(logging.WARNING, logger="easy_add")
    monkeypatch.setattr(
        ssl, "get_default_verify_paths", lambda: SimpleNamespace(cafile=None, capath=str(tmp_path / "none"))
    )
    context = build_ssl_context()
    assert "No system trust store found" in caplog.text
    assert context.cert_store_stats()["x509_ca"] > 0


def test_build_ssl_context_quiet_with_system_trust_store(monkeypatch, tmp_path: Path, caplog):
    caplog.set_level(logging.WARNING, logger="easy_add")
    monkeypatch.setattr(ssl, "get_default_verify_paths", lambda: SimpleNamespace(cafile=None, capath=str(tmp_path)))
    build_ssl_context()
    assert "No system trust store" not in caplog.text


def test_open_archive_short_body_is_transport_error(archive_server):
    archive_server.files["/app.tar.gz"] = b"only part of it"
    archive_server.declared_lengths["/app.tar.gz"] = 4096
    with create_session() as session:
        with open_archive(archive_server.url("/app.tar.gz"), session) as stream:
            with pytest.raises(TransportError) as exc:
                stream.read()
    assert exc.value.context["url"].endswith("/app.tar.gz")
