"""Test that the quickstart API works for certificate-loader."""
from __future__ import annotations


def test_quickstart_import() -> None:
    import certificate_loader

    assert certificate_loader.__version__ == "0.1.0"


def test_quickstart_load_file(tmp_path, make_cert) -> None:
    from certificate_loader import (
        SERVER_AUTHENTICATION_OID,
        CertificateLoader,
        CertificateLoaderOptions,
        CertificateLocation,
    )

    cert = make_cert("quickstart", enhanced_key_usages=[SERVER_AUTHENTICATION_OID])
    (tmp_path / "server.pfx").write_bytes(cert.to_pkcs12("secret"))

    loader = CertificateLoader(CertificateLoaderOptions(certificate_root_path=tmp_path))
    settings = CertificateLocation.from_path("server.pfx")
    settings.password = "secret"
    loaded = loader.load_certificate(settings, SERVER_AUTHENTICATION_OID)

    assert loaded is not None
    assert loaded.simple_name == "quickstart"


def test_quickstart_store_path_round_trip() -> None:
    from certificate_loader import StoreLocation, classify_path, format_store_path

    location = classify_path(r"cert:\LocalMachine\My\localhost")
    assert isinstance(location, StoreLocation)
    assert format_store_path(location) == r"cert:\LocalMachine\My\localhost"


def test_quickstart_settings_model() -> None:
    from certificate_loader import CertificateLocation, FileLocation

    settings = CertificateLocation(path="certs/server.pfx", password="secret")
    assert isinstance(settings.to_location(), FileLocation)
    assert "secret" not in str(settings)
