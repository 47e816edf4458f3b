"""Unit tests for the access point and IP range resolvers."""
import pytest
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from fleetmon.models.device import UNKNOWN_LOCATION
from fleetmon.models.ip_mapping import IpMapping
from fleetmon.services.location_resolver import (
    AccessPointResolver,
    IP_MAPPING_ERROR,
    IpRangeResolver,
    ResolutionOutcome,
    UNKNOWN_IP_LOCATION,
    ip_to_int,
    normalize_ip,
)


class TestAccessPointResolver:
    """Test cases for AccessPointResolver."""

    @pytest.fixture
    def resolver(self):
        return AccessPointResolver({"AA:BB:CC:DD:EE:FF": {"sector": "UTI", "floor": "3"}})

    def test_resolve_known_identifier(self, resolver):
        """Test resolving a configured access point."""
        result = resolver.resolve("AA:BB:CC:DD:EE:FF")

        assert result.sector == "UTI"
        assert result.floor == "3"
        assert result.outcome is ResolutionOutcome.RESOLVED
        assert not result.outcome.degraded

    def test_resolve_normalizes_case_and_separator(self, resolver):
        """Test lower-case and dash-separated identifiers."""
        result = resolver.resolve("aa-bb-cc-dd-ee-ff")
        assert result.sector == "UTI"

    @pytest.mark.parametrize("identifier", [None, "", "N/A"])
    def test_resolve_missing(self, resolver, identifier):
        """Test absent identifiers resolve to the sentinel."""
        result = resolver.resolve(identifier)

        assert result.sector == UNKNOWN_LOCATION
        assert result.floor == UNKNOWN_LOCATION
        assert result.outcome is ResolutionOutcome.MISSING

    def test_resolve_unmapped(self, resolver):
        """Test a well-formed identifier with no mapping."""
        result = resolver.resolve("11:22:33:44:55:66")

        assert result.sector == UNKNOWN_LOCATION
        assert result.outcome is ResolutionOutcome.UNMAPPED

    def test_resolve_malformed(self, resolver):
        """Test malformed identifiers are distinguishable from unmapped ones."""
        result = resolver.resolve("not-a-mac")

        assert result.sector == UNKNOWN_LOCATION
        assert result.outcome is ResolutionOutcome.MALFORMED
        assert result.outcome.degraded

    def test_resolve_partial_mapping(self):
        """Test an entry without a floor falls back to the sentinel floor."""
        resolver = AccessPointResolver({"AA:BB:CC:DD:EE:FF": {"sector": "UTI", "floor": ""}})
        result = resolver.resolve("AA:BB:CC:DD:EE:FF")

        assert result.sector == "UTI"
        assert result.floor == UNKNOWN_LOCATION

    def test_reload(self, resolver):
        """Test reloading the table from a loader."""
        loader = MagicMock()
        loader.load.return_value = {"11:22:33:44:55:66": {"sector": "RH", "floor": "1"}}

        resolver.reload(loader)

        assert resolver.resolve("11:22:33:44:55:66").sector == "RH"
        assert resolver.resolve("AA:BB:CC:DD:EE:FF").outcome is ResolutionOutcome.UNMAPPED


class TestIpHelpers:
    """Test cases for address normalization."""

    @pytest.mark.parametrize("raw,expected", [
        ("10.0.0.5", "10.0.0.5"),
        ("::ffff:10.0.0.5", "10.0.0.5"),
        ("10.0.0.5, 172.16.0.1", "10.0.0.5"),
        ("[2001:db8::1]", "2001:db8::1"),
        ("", None),
        (None, None),
    ])
    def test_normalize_ip(self, raw, expected):
        assert normalize_ip(raw) == expected

    def test_ip_to_int(self):
        assert ip_to_int("0.0.0.17") == 17
        assert ip_to_int("::ffff:0.0.0.17") == 17
        assert ip_to_int("10.0.0.1") == 167772161
        assert ip_to_int("999.1.1.1") is None
        assert ip_to_int("garbage") is None


class TestIpRangeResolver:
    """Test cases for IpRangeResolver against SQLite."""

    def _add(self, db_session, location, start, end):
        db_session.add(IpMapping(location=location, ip_start=start, ip_end=end))
        db_session.commit()

    def test_resolve_inside_range(self, db_session):
        """Test an address inside a configured range, bounds inclusive."""
        self._add(db_session, "Recepcao", "10.0.1.10", "10.0.1.20")
        resolver = IpRangeResolver(db_session)

        for address in ("10.0.1.10", "10.0.1.15", "10.0.1.20"):
            result = resolver.resolve(address)
            assert result.location == "Recepcao"
            assert result.outcome is ResolutionOutcome.RESOLVED

    def test_resolve_mapped_ipv6_form(self, db_session):
        """Test IPv4-mapped IPv6 client addresses."""
        self._add(db_session, "Recepcao", "10.0.1.10", "10.0.1.20")

        result = IpRangeResolver(db_session).resolve("::ffff:10.0.1.12")

        assert result.location == "Recepcao"

    def test_resolve_outside_ranges(self, db_session):
        """Test an address no range contains."""
        self._add(db_session, "Recepcao", "10.0.1.10", "10.0.1.20")

        result = IpRangeResolver(db_session).resolve("10.0.1.21")

        assert result.location == UNKNOWN_IP_LOCATION
        assert result.outcome is ResolutionOutcome.UNMAPPED

    def test_resolve_missing_and_malformed(self, db_session):
        """Test absent and unparsable addresses are tagged differently."""
        resolver = IpRangeResolver(db_session)

        assert resolver.resolve(None).outcome is ResolutionOutcome.MISSING
        malformed = resolver.resolve("10.0.0.300")
        assert malformed.location == UNKNOWN_IP_LOCATION
        assert malformed.outcome is ResolutionOutcome.MALFORMED

    def test_overlapping_ranges_first_inserted_wins(self, db_session):
        """Test overlapping ranges resolve to the earliest mapping."""
        self._add(db_session, "X", "0.0.0.10", "0.0.0.20")
        self._add(db_session, "Y", "0.0.0.15", "0.0.0.25")
        resolver = IpRangeResolver(db_session)

        assert resolver.resolve("0.0.0.17").location == "X"
        assert resolver.resolve("0.0.0.22").location == "Y"

    def test_malformed_stored_bounds_skipped(self, db_session):
        """Test a mapping with unparsable bounds does not break resolution."""
        self._add(db_session, "Broken", "nope", "0.0.0.50")
        self._add(db_session, "Good", "0.0.0.1", "0.0.0.50")

        assert IpRangeResolver(db_session).resolve("0.0.0.5").location == "Good"

    def test_match_is_order_sensitive(self):
        """Test the static matcher returns the first containing range."""
        ranges = [("X", 10, 20), ("Y", 15, 25)]

        assert IpRangeResolver.match(17, ranges) == "X"
        assert IpRangeResolver.match(17, list(reversed(ranges))) == "Y"
        assert IpRangeResolver.match(30, ranges) is None

    def test_resolve_database_error(self):
        """Test a failing range lookup yields the error sentinel instead of raising."""
        session = MagicMock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))

        result = IpRangeResolver(session).resolve("10.0.0.1")

        assert result.location == IP_MAPPING_ERROR
        assert result.outcome is ResolutionOutcome.ERROR
