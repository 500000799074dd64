"""
Unit tests for the MaxMind-backed geolocation service.
"""

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import geoip2.database
import geoip2.errors
import geoip2.webservice
import pytest

from src.shared.enrichment.geolocation import GeoIPCache, GeoIPService, ResolvedLocation
from src.shared.identity.exceptions import GeoResolutionError


def make_city_response(latitude=40.7128, longitude=-74.0060, accuracy_radius=5):
    """Build a stand-in for a geoip2 City model."""
    response = MagicMock()
    response.location.latitude = latitude
    response.location.longitude = longitude
    response.location.accuracy_radius = accuracy_radius
    return response


@pytest.fixture
def unconfigured_service(monkeypatch, tmp_path):
    """Service with no database and no web credentials."""
    monkeypatch.delenv("MAXMIND_DB_PATH", raising=False)
    monkeypatch.delenv("MAXMIND_ACCOUNT_ID", raising=False)
    monkeypatch.delenv("MAXMIND_LICENSE_KEY", raising=False)
    return GeoIPService(maxmind_db_path=str(tmp_path / "missing.mmdb"))


@pytest.fixture
def reader_service(unconfigured_service):
    """Service whose database reader is a mock."""
    reader = MagicMock()
    reader.city.return_value = make_city_response()
    unconfigured_service._maxmind_reader = reader
    return unconfigured_service


class TestResolve:
    """Tests for IP resolution."""

    def test_resolves_coordinates(self, reader_service):
        location = reader_service.resolve("203.0.113.10")

        assert location == ResolvedLocation(latitude=40.7128, longitude=-74.0060, accuracy_radius=5)
        reader_service._maxmind_reader.city.assert_called_once_with("203.0.113.10")

    def test_second_lookup_served_from_cache(self, reader_service):
        reader_service.resolve("203.0.113.10")
        reader_service.resolve("203.0.113.10")

        assert reader_service._maxmind_reader.city.call_count == 1
        assert len(reader_service.cache) == 1

    def test_missing_radius_defaults_to_zero(self, reader_service):
        reader_service._maxmind_reader.city.return_value = make_city_response(accuracy_radius=None)

        assert reader_service.resolve("203.0.113.10").accuracy_radius == 0

    def test_address_not_found(self, reader_service):
        reader_service._maxmind_reader.city.side_effect = geoip2.errors.AddressNotFoundError(
            "The address 10.0.0.1 is not in the database."
        )

        with pytest.raises(GeoResolutionError) as exc_info:
            reader_service.resolve("10.0.0.1")

        assert exc_info.value.ip == "10.0.0.1"
        assert exc_info.value.reason == "address not found"

    def test_lookup_failure(self, reader_service):
        reader_service._maxmind_reader.city.side_effect = geoip2.errors.GeoIP2Error("corrupt")

        with pytest.raises(GeoResolutionError, match="corrupt"):
            reader_service.resolve("203.0.113.10")

    def test_missing_coordinates(self, reader_service):
        reader_service._maxmind_reader.city.return_value = make_city_response(latitude=None)

        with pytest.raises(GeoResolutionError, match="no coordinates"):
            reader_service.resolve("203.0.113.10")

    def test_failures_are_not_cached(self, reader_service):
        reader_service._maxmind_reader.city.side_effect = geoip2.errors.AddressNotFoundError("nope")

        with pytest.raises(GeoResolutionError):
            reader_service.resolve("10.0.0.1")

        assert len(reader_service.cache) == 0

    def test_unconfigured_service_raises(self, unconfigured_service):
        assert unconfigured_service.is_configured is False

        with pytest.raises(GeoResolutionError, match="no geolocation provider"):
            unconfigured_service.resolve("203.0.113.10")

    def test_web_client_used_without_database(self, unconfigured_service):
        client = MagicMock()
        client.city.return_value = make_city_response(latitude=51.5074, longitude=-0.1278)
        unconfigured_service._maxmind_client = client

        assert unconfigured_service.resolve("198.51.100.20").latitude == 51.5074


class TestInitialization:
    """Tests for provider selection."""

    def test_opens_database_when_present(self, tmp_path):
        db_path = tmp_path / "GeoLite2-City.mmdb"
        db_path.write_bytes(b"")

        with patch.object(geoip2.database, "Reader") as reader_cls:
            service = GeoIPService(maxmind_db_path=str(db_path))

        reader_cls.assert_called_once_with(str(db_path))
        assert service.is_configured is True

    def test_falls_back_to_web_service(self, tmp_path):
        with patch.object(geoip2.webservice, "Client") as client_cls:
            service = GeoIPService(
                maxmind_db_path=str(tmp_path / "missing.mmdb"),
                maxmind_account_id="12345",
                maxmind_license_key="key",
            )

        client_cls.assert_called_once_with(12345, "key")
        assert service.is_configured is True

    def test_close_releases_reader(self, reader_service):
        reader = reader_service._maxmind_reader

        reader_service.close()

        reader.close.assert_called_once()


class TestGeoIPCache:
    """Tests for the resolution cache."""

    def test_put_and_get(self):
        cache = GeoIPCache()
        location = ResolvedLocation(latitude=1.0, longitude=2.0)

        cache.put("192.0.2.1", location)

        assert cache.get("192.0.2.1") == location
        assert cache.get("192.0.2.2") is None

    def test_expired_entries_dropped(self):
        cache = GeoIPCache(ttl_hours=1)
        cache.put("192.0.2.1", ResolvedLocation(latitude=1.0, longitude=2.0))
        location, _ = cache._cache["192.0.2.1"]
        cache._cache["192.0.2.1"] = (location, datetime.now(timezone.utc) - timedelta(hours=2))

        assert cache.get("192.0.2.1") is None
        assert len(cache) == 0

    def test_evicts_oldest_at_capacity(self):
        cache = GeoIPCache(max_size=2)
        cache.put("192.0.2.1", ResolvedLocation(latitude=1.0, longitude=1.0))
        cache.put("192.0.2.2", ResolvedLocation(latitude=2.0, longitude=2.0))
        cache._cache["192.0.2.1"] = (
            cache._cache["192.0.2.1"][0],
            datetime.now(timezone.utc) - timedelta(minutes=5),
        )

        cache.put("192.0.2.3", ResolvedLocation(latitude=3.0, longitude=3.0))

        assert len(cache) == 2
        assert cache.get("192.0.2.1") is None
        assert cache.get("192.0.2.3") is not None

    def test_concurrent_puts_at_capacity(self):
        """Writers racing on a full cache never lose track of entries."""
        cache = GeoIPCache(max_size=50)
        errors = []

        def writer(worker):
            try:
                for i in range(3000):
                    ip = f"10.{worker}.{i // 256}.{i % 256}"
                    cache.put(ip, ResolvedLocation(latitude=float(worker), longitude=float(i)))
                    cache.get(ip)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(w,)) for w in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(cache) <= 50

    def test_refreshing_an_entry_does_not_evict(self):
        cache = GeoIPCache(max_size=2)
        cache.put("192.0.2.1", ResolvedLocation(latitude=1.0, longitude=1.0))
        cache.put("192.0.2.2", ResolvedLocation(latitude=2.0, longitude=2.0))

        cache.put("192.0.2.2", ResolvedLocation(latitude=2.0, longitude=2.0))

        assert cache.get("192.0.2.1") is not None
        assert len(cache) == 2

    def test_clear(self):
        cache = GeoIPCache()
        cache.put("192.0.2.1", ResolvedLocation(latitude=1.0, longitude=2.0))

        cache.clear()

        assert len(cache) == 0


def test_resolved_location_to_dict():
    location = ResolvedLocation(latitude=39.1702, longitude=-76.8538, accuracy_radius=20)

    assert location.to_dict() == {"lat": 39.1702, "lon": -76.8538, "radius": 20}
