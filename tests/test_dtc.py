"""Tests for diagnostic trouble code detection and lookup."""

import httpx
import pytest

from inquiry_router.config import DtcApiConfig
from inquiry_router.dtc import (
    HttpDtcLookup,
    ReferenceDtcLookup,
    describe_code,
    evaluate_dtc,
    fetch_dtc_information,
    find_dtc_codes,
    format_dtc_record,
)
from inquiry_router.errors import DtcLookupError
from inquiry_router.models import ConversationState, DTCRecord, DtcEvaluation, DTCInfo, Vehicle


@pytest.fixture
def reference():
    return ReferenceDtcLookup()


def test_find_dtc_codes_is_case_insensitive_and_distinct():
    assert find_dtc_codes("codes p0420 and C0035, then P0420 again") == ["P0420", "C0035"]


def test_find_dtc_codes_orders_by_family():
    assert find_dtc_codes("U0100 B0100 C0035 P0300") == ["P0300", "B0100", "C0035", "U0100"]


def test_describe_code_uses_prefix_tables():
    info = describe_code("P0420")

    assert info.system == "Auxiliary Emissions Controls"
    assert info.severity == "severe"
    assert info.description == (
        "Auxiliary Emissions Controls related issue. This code requires further diagnosis."
    )


def test_describe_code_unknown_prefixes():
    info = describe_code("P4999")

    assert info.system == "Unknown System"
    assert info.severity == "unknown"


def test_evaluate_dtc_without_codes():
    assert evaluate_dtc("hello there").reason == "Not DTC-related content"
    outcome = evaluate_dtc("what does this code mean")
    assert outcome.score == 0.0
    assert outcome.reason == "No DTC codes found in message"
    assert outcome.evaluation is None


def test_evaluate_dtc_with_unknown_description_requests_lookup():
    outcome = evaluate_dtc("My car shows P0300 and C0035")

    assert outcome.score == 0.9
    assert outcome.reason == "Found 2 diagnostic trouble code(s)"
    assert [info.code for info in outcome.evaluation.dtc_codes] == ["P0300", "C0035"]
    assert outcome.evaluation.dtc_codes[1].severity == "critical"
    assert outcome.evaluation.needs_additional_info
    assert outcome.evaluation.suggested_actions == [
        "FETCH_DTC_DATABASE",
        "SEARCH_TECHNICAL_DOCUMENTATION",
    ]


def test_evaluate_dtc_uses_known_descriptions():
    outcome = evaluate_dtc("P0300", {"P0300": "Random/Multiple Cylinder Misfire Detected"})

    assert outcome.evaluation.dtc_codes[0].description == "Random/Multiple Cylinder Misfire Detected"
    assert not outcome.evaluation.needs_additional_info
    assert outcome.evaluation.suggested_actions == []


@pytest.mark.asyncio
async def test_reference_lookup_known_code(reference):
    record = await reference.lookup("p0420")

    assert record.description == "Catalyst System Efficiency Below Threshold (Bank 1)"
    assert record.system == "Emissions Control"
    assert record.vehicle_specific is None


@pytest.mark.asyncio
async def test_reference_lookup_marks_vehicle_requests(reference):
    record = await reference.lookup("P0420", Vehicle(year=2015, make="Honda", model="Civic"))

    assert record.vehicle_specific is False
    assert reference.records["P0420"].vehicle_specific is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "code,system,severity",
    [
        ("P1234", "Powertrain - Manufacturer Specific", "moderate"),
        ("B0999", "Body - Generic OBD-II", "moderate"),
        ("B1999", "Body - Manufacturer Specific", "informational"),
        ("C0999", "Chassis - Generic OBD-II", "critical"),
        ("C2999", "Chassis - Manufacturer Specific", "severe"),
        ("U1999", "Network - Manufacturer Specific", "severe"),
    ],
)
async def test_reference_lookup_generic_family(reference, code, system, severity):
    record = await reference.lookup(code)

    assert record.system == system
    assert record.severity == severity
    assert record.possible_causes == ["Unknown - This is a generic interpretation only"]


@pytest.mark.asyncio
async def test_reference_lookup_without_data_file(tmp_path):
    lookup = ReferenceDtcLookup(tmp_path / "missing.json")

    assert lookup.records == {}
    assert await lookup.lookup("P0420") is None


@pytest.mark.asyncio
async def test_reference_lookup_with_malformed_file(tmp_path):
    data_file = tmp_path / "broken.json"
    data_file.write_text("{not json")

    assert ReferenceDtcLookup(data_file).records == {}


def _http_lookup(handler, reference):
    return HttpDtcLookup(
        DtcApiConfig(endpoint="https://dtc.example.test/lookup", use_live_api=True, timeout=1.0),
        fallback=reference,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_http_lookup_uses_api_record(reference):
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(
            200,
            json={
                "code": "P0420",
                "description": "Catalyst efficiency low (from API)",
                "severity": "moderate",
                "system": "Emissions Control",
            },
        )

    lookup = _http_lookup(handler, reference)
    record = await lookup.lookup("p0420", Vehicle(year=2015, make="Honda", model="Civic"))

    assert record.description == "Catalyst efficiency low (from API)"
    assert seen == {"code": "P0420", "year": "2015", "make": "Honda", "model": "Civic"}


@pytest.mark.asyncio
async def test_http_lookup_unknown_code(reference):
    lookup = _http_lookup(lambda request: httpx.Response(404), reference)

    assert await lookup.lookup("P0420") is None


@pytest.mark.asyncio
async def test_http_lookup_falls_back_on_server_error(reference):
    lookup = _http_lookup(lambda request: httpx.Response(500, text="down"), reference)

    record = await lookup.lookup("P0420")

    assert record.description == "Catalyst System Efficiency Below Threshold (Bank 1)"


@pytest.mark.asyncio
async def test_http_lookup_falls_back_on_connection_error(reference):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    record = await _http_lookup(handler, reference).lookup("C0035")

    assert record.system == "Braking System"


@pytest.mark.asyncio
async def test_http_lookup_falls_back_on_invalid_payload(reference):
    lookup = _http_lookup(lambda request: httpx.Response(200, json={"unexpected": True}), reference)

    record = await lookup.lookup("U0100")

    assert record.description == "Lost Communication with ECM/PCM"


def test_format_dtc_record_sections():
    record = DTCRecord(
        code="P0420",
        description="Catalyst System Efficiency Below Threshold (Bank 1)",
        symptoms=["Check Engine Light on"],
        possible_causes=["Faulty catalytic converter"],
        fixes=["Replace catalytic converter"],
        severity="moderate",
        system="Emissions Control",
        vehicle_specific=True,
    )

    text = format_dtc_record(record, Vehicle(year=2015, make="Honda", model="Civic"))

    assert text.startswith("## Diagnostic Code: P0420\n\n**System:** Emissions Control\n")
    assert "**Severity:** 🟡 Moderate - Monitor and service" in text
    assert "**Common Symptoms:**\n- Check Engine Light on\n" in text
    assert "**Possible Causes:**\n- Faulty catalytic converter\n" in text
    assert "**Recommended Fixes:**\n- Replace catalytic converter\n" in text
    assert text.endswith("specific to your 2015 Honda Civic.")


def test_format_dtc_record_unknown_severity():
    text = format_dtc_record(DTCRecord(code="P4999", description="Unknown"))

    assert "⚪ Unknown severity" in text
    assert "**Note:**" not in text


@pytest.mark.asyncio
async def test_fetch_without_codes_asks_for_one(reference):
    state = ConversationState()

    outcome = await fetch_dtc_information(state, reference)

    assert "format P0123, B0123, C0123, or U0123" in outcome.output
    assert outcome.state is state


@pytest.mark.asyncio
async def test_fetch_records_lookup_in_state(reference):
    state = ConversationState(
        last_dtc_evaluation=DtcEvaluation(dtc_codes=[DTCInfo(code="P0420"), DTCInfo(code="X1234")])
    )

    outcome = await fetch_dtc_information(state, reference)

    assert "## Diagnostic Code: P0420" in outcome.output
    assert "I couldn't find information for the diagnostic code X1234" in outcome.output
    assert [record.code for record in outcome.records] == ["P0420"]
    assert outcome.state.last_dtc_lookup.codes == ["P0420", "X1234"]
    assert outcome.state.last_dtc_lookup.result == outcome.output
    assert state.last_dtc_lookup is None


class FailingLookup:
    async def lookup(self, code, vehicle=None):
        raise DtcLookupError("database offline")


@pytest.mark.asyncio
async def test_fetch_lookup_errors_return_apology():
    state = ConversationState(last_dtc_evaluation=DtcEvaluation(dtc_codes=[DTCInfo(code="P0420")]))

    outcome = await fetch_dtc_information(state, FailingLookup())

    assert outcome.output.startswith("I encountered an error while retrieving diagnostic code")
    assert outcome.state is state
    assert outcome.error == "database offline"
