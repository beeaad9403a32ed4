"""Tests for canonical record assembly."""

import logging

import httpx
import pytest

from leads.assembler import RecordAssembler, client_ip
from leads.geolocation import GeoLocator
from leads.models import GEO_FIELDS, CanonicalLead, RawRequest


def geolocator(calls):
    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={
            "status": "success",
            "country": "Israel",
            "regionName": "Central District",
            "city": "Petah Tikva",
            "lat": 32.08,
            "lon": 34.88,
        })

    return GeoLocator(base_url="http://geo.test", transport=httpx.MockTransport(handler))


class TestClientIp:
    """Tests for client address extraction."""

    def test_cloudflare_header_first(self):
        raw = RawRequest.build(headers={
            "CF-Connecting-IP": "198.51.100.1",
            "X-Forwarded-For": "203.0.113.7",
        })

        assert client_ip(raw) == "198.51.100.1"

    def test_first_valid_forwarded_entry(self):
        raw = RawRequest.build(headers={"X-Forwarded-For": "unknown, 203.0.113.7, 10.0.0.1"})

        assert client_ip(raw) == "203.0.113.7"

    def test_real_ip_header(self):
        assert client_ip(RawRequest.build(headers={"X-Real-IP": "203.0.113.9"})) == "203.0.113.9"

    def test_client_host_fallback(self):
        assert client_ip(RawRequest.build(client_host="192.0.2.44")) == "192.0.2.44"

    def test_no_address(self):
        assert client_ip(RawRequest.build(client_host="testclient")) is None


class TestAssemble:
    """Tests for RecordAssembler.assemble()."""

    @pytest.mark.asyncio
    async def test_status_new_and_empties_stripped(self):
        lead = await RecordAssembler().assemble(
            {"full_name": "Dana Levi", "phone": "0501234567", "notes": "   "},
            {"utm_source": "google", "utm_medium": ""},
            RawRequest.build(),
        )
        row = lead.to_row()

        assert row == {"status": "new", "full_name": "Dana Levi", "phone": "0501234567", "utm_source": "google"}
        assert all(value not in ("", None) for value in row.values())

    @pytest.mark.asyncio
    async def test_referrer_falls_back_to_header(self):
        raw = RawRequest.build(headers={"Referer": "https://example.com/landing"})
        lead = await RecordAssembler().assemble({"phone": "0501234567"}, {}, raw)

        assert lead.referrer == "https://example.com/landing"

    @pytest.mark.asyncio
    async def test_body_referrer_wins(self):
        raw = RawRequest.build(headers={"Referer": "https://example.com/landing"})
        lead = await RecordAssembler().assemble(
            {"phone": "0501234567", "referrer": "https://google.com/"}, {}, raw
        )

        assert lead.referrer == "https://google.com/"

    @pytest.mark.asyncio
    async def test_private_ip_skips_geolocation(self):
        calls = []
        raw = RawRequest.build(headers={"X-Forwarded-For": "10.0.0.5"})
        lead = await RecordAssembler(geolocator=geolocator(calls)).assemble({"phone": "0501234567"}, {}, raw)

        row = lead.to_row()
        assert calls == []
        assert row["ip"] == "10.0.0.5"
        assert not any(key in row for key in GEO_FIELDS)

    @pytest.mark.asyncio
    async def test_public_ip_is_geolocated(self):
        calls = []
        raw = RawRequest.build(headers={"X-Forwarded-For": "8.8.8.8"})
        lead = await RecordAssembler(geolocator=geolocator(calls)).assemble({"phone": "0501234567"}, {}, raw)

        assert len(calls) == 1
        assert lead.geo_city == "Petah Tikva"
        assert lead.geo_text == "Petah Tikva, Central District, Israel"

    @pytest.mark.asyncio
    async def test_logs_masked_sample_only(self, caplog):
        caplog.set_level(logging.INFO, logger="leads.assembler")
        await RecordAssembler().assemble(
            {"full_name": "Dana Levi", "email": "dana@example.com", "phone": "0501234567", "notes": "secret note"},
            {"utm_source": "google"},
            RawRequest.build(),
            received_keys=["name", "email", "phone", "message"],
        )

        text = caplog.text
        assert "D***" in text
        assert "***@example.com" in text
        assert "***567" in text
        assert "Dana Levi" not in text
        assert "secret note" not in text
        assert "google" in text

    @pytest.mark.asyncio
    async def test_sampling_can_be_disabled(self, caplog):
        caplog.set_level(logging.INFO, logger="leads.assembler")
        await RecordAssembler(log_sample_values=False).assemble(
            {"full_name": "Dana Levi"}, {}, RawRequest.build()
        )

        assert "D***" not in caplog.text
        assert "Lead assembled" in caplog.text


class TestPersist:
    """Tests for RecordAssembler.persist()."""

    @pytest.mark.asyncio
    async def test_inserts_row_once(self, accepting_store, storage_requests):
        lead = CanonicalLead(full_name="Dana", phone="0501234567", utm_term="")

        assert await RecordAssembler().persist(lead, accepting_store) == 101
        assert len(storage_requests) == 1
