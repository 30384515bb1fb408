"""Tests for certificate_loader.store_resolver — two-phase store search."""
from __future__ import annotations

import datetime

import pytest

from certificate_loader.errors import ConfigurationError
from certificate_loader.location import StoreLocation, StoreScope
from certificate_loader.store_resolver import StoreResolver
from certificate_loader.stores import InMemoryCertificateStore, StoreHandle
from certificate_loader.usage import CLIENT_AUTHENTICATION_OID, SERVER_AUTHENTICATION_OID

NOW = datetime.datetime.now(datetime.timezone.utc)


def _days(n: int) -> datetime.datetime:
    return NOW + datetime.timedelta(days=n)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryCertificateStore:
    return InMemoryCertificateStore()


@pytest.fixture()
def resolver(store: InMemoryCertificateStore) -> StoreResolver:
    return StoreResolver(store)


# ---------------------------------------------------------------------------
# Subject phase
# ---------------------------------------------------------------------------


class TestSubjectPhase:
    def test_exact_match_wins_over_longer_lived_substring_match(
        self, store, resolver, make_cert
    ) -> None:
        exact = make_cert("MyCert", not_after=_days(30))
        substring = make_cert("MyCert-2", not_after=_days(300))
        store.add(substring)
        store.add(exact)

        found = resolver.resolve(StoreLocation(subject="MyCert"))

        assert found.thumbprint == exact.thumbprint

    def test_exact_match_is_case_insensitive(self, store, resolver, make_cert) -> None:
        cert = make_cert("LocalHost")
        store.add(make_cert("localhost.internal", not_after=_days(300)))
        store.add(cert)
        assert resolver.resolve(StoreLocation(subject="localhost")).thumbprint == cert.thumbprint

    def test_fallback_is_latest_expiring_substring_match(self, store, resolver, make_cert) -> None:
        short = make_cert("service-a", not_after=_days(10))
        long = make_cert("service-b", not_after=_days(100))
        middle = make_cert("service-c", not_after=_days(50))
        for cert in (short, long, middle):
            store.add(cert)

        found = resolver.resolve(StoreLocation(subject="service"))

        assert found.thumbprint == long.thumbprint

    def test_latest_expiring_exact_match_is_preferred(self, store, resolver, make_cert) -> None:
        older = make_cert("localhost", not_after=_days(10))
        newer = make_cert("localhost", not_after=_days(365))
        store.add(older)
        store.add(newer)
        assert resolver.resolve(StoreLocation(subject="localhost")).thumbprint == newer.thumbprint

    def test_distinguished_name_search(self, store, resolver, make_cert) -> None:
        cert = make_cert("MyCert", organization="MyOrg")
        store.add(make_cert("MyCert", organization="OtherOrg"))
        store.add(cert)
        found = resolver.resolve(StoreLocation(subject="CN=MyCert, O=MyOrg"))
        assert found.thumbprint == cert.thumbprint

    def test_subject_match_short_circuits_thumbprint_phase(
        self, store, resolver, make_cert
    ) -> None:
        target = make_cert("target")
        # A certificate whose subject happens to contain the other's thumbprint.
        decoy = make_cert(f"x{target.thumbprint}x")
        store.add(target)
        store.add(decoy)

        found = resolver.resolve(StoreLocation(subject=target.thumbprint))

        assert found.thumbprint == decoy.thumbprint


# ---------------------------------------------------------------------------
# Thumbprint phase
# ---------------------------------------------------------------------------


class TestThumbprintPhase:
    def test_thumbprint_lookup(self, store, resolver, make_cert) -> None:
        cert = make_cert("alpha")
        store.add(make_cert("beta"))
        store.add(cert)

        found = resolver.resolve(StoreLocation(subject=cert.thumbprint))

        assert found.thumbprint == cert.thumbprint

    def test_thumbprint_is_case_insensitive(self, store, resolver, make_cert) -> None:
        cert = make_cert("alpha")
        store.add(cert)
        found = resolver.resolve(StoreLocation(subject=cert.thumbprint.lower()))
        assert found.thumbprint == cert.thumbprint

    def test_thumbprint_lookup_applies_filters(self, store, resolver, make_cert) -> None:
        cert = make_cert("alpha", with_key=False)
        store.add(cert)
        with pytest.raises(ConfigurationError):
            resolver.resolve(StoreLocation(subject=cert.thumbprint))


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class TestFilters:
    def test_expired_certificate_is_excluded(self, store, resolver, make_cert) -> None:
        valid = make_cert("localhost", not_after=_days(30))
        expired = make_cert(
            "localhost", not_before=_days(-400), not_after=_days(-1)
        )
        store.add(expired)
        store.add(valid)

        found = resolver.resolve(
            StoreLocation(
                subject="localhost",
                store_name="My",
                store_scope="CurrentUser",
                require_private_key=True,
            )
        )

        assert found.thumbprint == valid.thumbprint

    def test_only_expired_raises_unless_allowed(self, store, resolver, make_cert) -> None:
        expired = make_cert("legacy", not_before=_days(-400), not_after=_days(-1))
        store.add(expired)

        with pytest.raises(ConfigurationError):
            resolver.resolve(StoreLocation(subject="legacy"))

        found = resolver.resolve(StoreLocation(subject="legacy", allow_invalid=True))
        assert found.thumbprint == expired.thumbprint

    def test_not_yet_valid_certificate_is_excluded(self, store, resolver, make_cert) -> None:
        store.add(make_cert("future", not_before=_days(1), not_after=_days(30)))
        with pytest.raises(ConfigurationError):
            resolver.resolve(StoreLocation(subject="future"))

    def test_private_key_required_by_default(self, store, resolver, make_cert) -> None:
        keyless = make_cert("ISRG Root X1", with_key=False)
        store.add(keyless, "Root")

        with pytest.raises(ConfigurationError):
            resolver.resolve(StoreLocation(subject="ISRG Root X1", store_name="Root"))

        found = resolver.resolve(
            StoreLocation(subject="ISRG Root X1", store_name="Root", require_private_key=False)
        )
        assert found.thumbprint == keyless.thumbprint
        assert found.has_private_key is False

    def test_keyless_exact_match_does_not_beat_keyed_substring(self, store, resolver, make_cert) -> None:
        keyless = make_cert("api", with_key=False)
        keyed = make_cert("api-gateway")
        store.add(keyless)
        store.add(keyed)
        assert resolver.resolve(StoreLocation(subject="api")).thumbprint == keyed.thumbprint

    def test_enhanced_key_usage_filters_candidates(self, store, resolver, make_cert) -> None:
        client_only = make_cert(
            "localhost", enhanced_key_usages=[CLIENT_AUTHENTICATION_OID], not_after=_days(300)
        )
        server = make_cert(
            "localhost", enhanced_key_usages=[SERVER_AUTHENTICATION_OID], not_after=_days(30)
        )
        store.add(client_only)
        store.add(server)

        found = resolver.resolve(StoreLocation(subject="localhost"), SERVER_AUTHENTICATION_OID)

        assert found.thumbprint == server.thumbprint

    def test_certificate_without_eku_matches_any_usage(self, store, resolver, make_cert) -> None:
        unrestricted = make_cert("localhost", enhanced_key_usages=None)
        store.add(unrestricted)
        found = resolver.resolve(StoreLocation(subject="localhost"), SERVER_AUTHENTICATION_OID)
        assert found.thumbprint == unrestricted.thumbprint

    def test_usage_mismatch_raises(self, store, resolver, make_cert) -> None:
        store.add(make_cert("localhost", enhanced_key_usages=[CLIENT_AUTHENTICATION_OID]))
        with pytest.raises(ConfigurationError):
            resolver.resolve(StoreLocation(subject="localhost"), SERVER_AUTHENTICATION_OID)


# ---------------------------------------------------------------------------
# Store selection and failures
# ---------------------------------------------------------------------------


class TestStoreSelection:
    def test_defaults_to_current_user_personal_store(self, store, resolver, make_cert) -> None:
        cert = make_cert("localhost")
        store.add(cert, "My", StoreScope.CURRENT_USER)
        store.add(make_cert("localhost"), "My", StoreScope.LOCAL_MACHINE)
        assert resolver.resolve(StoreLocation(subject="localhost")).thumbprint == cert.thumbprint

    def test_named_store_and_scope(self, store, resolver, make_cert) -> None:
        cert = make_cert("machine")
        store.add(cert, "WebHosting", StoreScope.LOCAL_MACHINE)
        found = resolver.resolve(
            StoreLocation(subject="machine", store_name="webhosting", store_scope="localmachine")
        )
        assert found.thumbprint == cert.thumbprint

    def test_not_found_names_subject_and_store(self, resolver) -> None:
        with pytest.raises(ConfigurationError, match=r"does_not_exist.*CurrentUser/My"):
            resolver.resolve(StoreLocation(subject="does_not_exist"))

    def test_unknown_scope_raises(self, resolver) -> None:
        with pytest.raises(ConfigurationError, match="Nowhere"):
            resolver.resolve(StoreLocation(subject="localhost", store_scope="Nowhere"))

    def test_store_handle_is_closed_on_every_path(self, make_cert) -> None:
        handles: list[StoreHandle] = []

        class RecordingStore(InMemoryCertificateStore):
            def open(self, *args, **kwargs):  # type: ignore[no-untyped-def]
                handle = super().open(*args, **kwargs)
                handles.append(handle)
                return handle

        store = RecordingStore()
        store.add(make_cert("present"))
        resolver = StoreResolver(store)

        resolver.resolve(StoreLocation(subject="present"))
        with pytest.raises(ConfigurationError):
            resolver.resolve(StoreLocation(subject="absent"))

        assert len(handles) == 2
        assert all(h._closed for h in handles)
