"""Diagnostic trouble code (DTC) detection and lookup.

The evaluator finds OBD-II style codes (``P0420``, ``C0035``...) in a message
and classifies them by severity and vehicle system. Descriptions come from a
``DtcLookup`` collaborator injected by the caller:

- ``ReferenceDtcLookup`` answers from the bundled JSON reference table, with a
  generic record per code family for codes it does not know.
- ``HttpDtcLookup`` queries the remote DTC database over HTTP and falls back
  to the reference table when the API is unreachable.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .config import DtcApiConfig, RouterConfig
from .errors import DtcLookupError
from .models import (
    ConversationState,
    DTCInfo,
    DtcEvaluation,
    DtcLookupOutcome,
    DtcLookupRecord,
    DtcOutcome,
    DTCRecord,
    Severity,
    Vehicle,
)

logger = logging.getLogger(__name__)

DTC_PATTERNS = (
    re.compile(r"P[0-9]{4}"),  # Powertrain
    re.compile(r"B[0-9]{4}"),  # Body
    re.compile(r"C[0-9]{4}"),  # Chassis
    re.compile(r"U[0-9]{4}"),  # Network
)

SEVERITY_MAP: Dict[str, Severity] = {
    "P0": "severe",
    "P1": "moderate",
    "P2": "severe",
    "P3": "moderate",
    "B0": "moderate",
    "B1": "informational",
    "B2": "moderate",
    "B3": "informational",
    "C0": "critical",  # generic chassis codes are often safety related
    "C1": "severe",
    "C2": "critical",
    "C3": "severe",
    "U0": "severe",
    "U1": "moderate",
    "U2": "severe",
    "U3": "moderate",
}

SYSTEM_CATEGORIZATION: Dict[str, str] = {
    "P00": "Engine Management",
    "P01": "Fuel and Air Metering",
    "P02": "Fuel and Air Metering",
    "P03": "Ignition System",
    "P04": "Auxiliary Emissions Controls",
    "P05": "Vehicle Speed Control and Idle Control",
    "P06": "Computer Output Circuit",
    "P07": "Transmission",
    "P08": "Transmission",
    "P09": "Transmission",
    "B00": "Body Controls",
    "B01": "Body Controls",
    "B02": "Body Controls",
    "B03": "Body Controls",
    "B04": "Body Controls",
    "B05": "Restraints",
    "B06": "Restraints",
    "B07": "Restraints",
    "C00": "Braking System",
    "C01": "Braking System",
    "C02": "Braking System",
    "C03": "Steering System",
    "C04": "Suspension System",
    "C05": "Steering System",
    "C06": "Suspension System",
    "C07": "Wheels/Tires",
    "U00": "Network Communication",
    "U01": "Network Communication",
    "U02": "Network Communication",
    "U03": "Network Communication",
    "U04": "Network Communication",
}

SEVERITY_LABELS: Dict[str, str] = {
    "critical": "🔴 Critical - Immediate attention required",
    "severe": "🟠 Severe - Service soon",
    "moderate": "🟡 Moderate - Monitor and service",
    "informational": "🔵 Informational - No immediate action required",
}

FURTHER_DIAGNOSIS = "This code requires further diagnosis."


def find_dtc_codes(text: str) -> List[str]:
    """Return the distinct DTCs in ``text``, powertrain codes first."""
    upper_text = (text or "").upper()
    codes: List[str] = []
    for pattern in DTC_PATTERNS:
        for code in pattern.findall(upper_text):
            if code not in codes:
                codes.append(code)
    return codes


def describe_code(code: str, dtc_database: Optional[Dict[str, str]] = None) -> DTCInfo:
    """Classify a single code by severity and system."""
    system = SYSTEM_CATEGORIZATION.get(code[:3], "Unknown System")
    description = (dtc_database or {}).get(code)
    if not description:
        description = f"{system} related issue. {FURTHER_DIAGNOSIS}"
    return DTCInfo(
        code=code,
        system=system,
        severity=SEVERITY_MAP.get(code[:2], "unknown"),
        description=description,
    )


def evaluate_dtc(text: str, dtc_database: Optional[Dict[str, str]] = None) -> DtcOutcome:
    """Scan a message for diagnostic trouble codes.

    Args:
        text: Current message text.
        dtc_database: Known code descriptions, keyed by code.

    Returns:
        DtcOutcome: score 0.9 with the detected codes, or score 0 when the
        message holds no codes (or scanning failed).
    """
    try:
        codes = find_dtc_codes(text)
        if not codes:
            lowered = (text or "").lower()
            if "code" not in lowered and "dtc" not in lowered:
                return DtcOutcome(score=0.0, reason="Not DTC-related content")
            return DtcOutcome(score=0.0, reason="No DTC codes found in message")

        found = [describe_code(code, dtc_database) for code in codes]
    except (AttributeError, TypeError) as e:
        logger.error(f"Error in DTC evaluator: {e}")
        return DtcOutcome(score=0.0, reason="Error evaluating for DTCs")

    needs_more_info = any(
        not info.description or FURTHER_DIAGNOSIS in info.description for info in found
    )
    evaluation = DtcEvaluation(
        dtc_codes=found,
        needs_additional_info=needs_more_info,
        suggested_actions=(
            ["FETCH_DTC_DATABASE", "SEARCH_TECHNICAL_DOCUMENTATION"] if needs_more_info else []
        ),
    )
    return DtcOutcome(
        score=0.9,
        reason=f"Found {len(found)} diagnostic trouble code(s)",
        evaluation=evaluation,
    )


class DtcLookup(Protocol):
    """Capability to resolve a DTC into a reference record."""

    async def lookup(self, code: str, vehicle: Optional[Vehicle] = None) -> Optional[DTCRecord]:
        ...


class ReferenceDtcLookup:
    """DTC lookup backed by the bundled reference table.

    The reference file holds full records for common codes under ``codes``
    and a generic description per code family under ``families``. Missing or
    malformed files are logged and leave the table empty.

    Attributes:
        data_path: Location of the JSON reference file.
        records: Known records keyed by code.
        families: Generic family descriptions keyed by code letter.
    """

    def __init__(self, data_path: Optional[Path] = None):
        self.data_path = data_path or RouterConfig().reference_data_path
        self.records: Dict[str, DTCRecord] = {}
        self.families: Dict[str, Dict[str, Any]] = {}
        self._load_reference_data()

    def _load_reference_data(self):
        if not self.data_path.exists():
            logger.warning(f"DTC reference data not found: {self.data_path}")
            return

        try:
            with open(self.data_path, "r") as f:
                data = json.load(f)
            self.records = {
                code: DTCRecord.model_validate(record)
                for code, record in data.get("codes", {}).items()
            }
            self.families = data.get("families", {})
            logger.info(f"Loaded {len(self.records)} DTC reference records")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load DTC reference data {self.data_path}: {e}")

    def _generic_record(self, code: str) -> Optional[DTCRecord]:
        family = self.families.get(code[:1])
        if not family:
            return None

        generic = code[1:].startswith("0")
        scope = "Generic OBD-II" if generic else "Manufacturer Specific"
        return DTCRecord(
            code=code,
            description=family["description"],
            possible_causes=["Unknown - This is a generic interpretation only"],
            symptoms=["Check Engine Light or other warning lights may be illuminated"],
            fixes=[
                "Consult a professional diagnostic service for this specific code",
                "Check technical service bulletins (TSBs) for your specific vehicle",
            ],
            severity=family["severity"]["generic" if generic else "manufacturer"],
            system=f"{family['name']} - {scope}",
            vehicle_specific=False,
        )

    async def lookup(self, code: str, vehicle: Optional[Vehicle] = None) -> Optional[DTCRecord]:
        code = code.upper()
        record = self.records.get(code)
        if record is None:
            return self._generic_record(code)

        record = record.model_copy()
        if vehicle is not None:
            record.vehicle_specific = False
        return record


class HttpDtcLookup:
    """DTC lookup against the remote DTC database API.

    Transport and decoding failures are logged and answered from the
    fallback lookup instead.

    Attributes:
        config: Remote API settings.
        fallback: Lookup used when the API cannot answer.
    """

    def __init__(
        self,
        config: Optional[DtcApiConfig] = None,
        fallback: Optional[DtcLookup] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or DtcApiConfig()
        self.fallback = fallback or ReferenceDtcLookup()
        self._transport = transport

    async def _fetch(self, code: str, vehicle: Optional[Vehicle]) -> Optional[DTCRecord]:
        params: Dict[str, Any] = {"code": code}
        if vehicle is not None:
            params.update(year=vehicle.year, make=vehicle.make, model=vehicle.model)

        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.get(
                    self.config.endpoint, params=params, timeout=self.config.timeout
                )
            except httpx.HTTPError as e:
                raise DtcLookupError(f"DTC API request failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise DtcLookupError(f"DTC API error: {response.status_code} - {response.text}")

        try:
            return DTCRecord.model_validate(response.json())
        except ValueError as e:
            raise DtcLookupError(f"DTC API returned an invalid record: {e}") from e

    async def lookup(self, code: str, vehicle: Optional[Vehicle] = None) -> Optional[DTCRecord]:
        code = code.upper()
        try:
            return await self._fetch(code, vehicle)
        except DtcLookupError as e:
            logger.warning(f"{e}; using reference data for {code}")
            return await self.fallback.lookup(code, vehicle)


def build_dtc_lookup(config: Optional[RouterConfig] = None) -> DtcLookup:
    """Create the lookup selected by configuration."""
    config = config or RouterConfig()
    reference = ReferenceDtcLookup(config.reference_data_path)
    if config.dtc_api.use_live_api:
        return HttpDtcLookup(config.dtc_api, fallback=reference)
    return reference


def format_dtc_record(record: DTCRecord, vehicle: Optional[Vehicle] = None) -> str:
    """Render a DTC record as markdown."""
    severity_label = SEVERITY_LABELS.get(record.severity, "⚪ Unknown severity")

    response = f"## Diagnostic Code: {record.code}\n\n"
    response += f"**System:** {record.system}\n"
    response += f"**Severity:** {severity_label}\n\n"
    response += f"**Description:**\n{record.description}\n\n"

    if record.symptoms:
        response += "**Common Symptoms:**\n"
        response += "".join(f"- {symptom}\n" for symptom in record.symptoms)
        response += "\n"

    if record.possible_causes:
        response += "**Possible Causes:**\n"
        response += "".join(f"- {cause}\n" for cause in record.possible_causes)
        response += "\n"

    if record.fixes:
        response += "**Recommended Fixes:**\n"
        response += "".join(f"- {fix}\n" for fix in record.fixes)

    if vehicle is not None and record.vehicle_specific:
        response += (
            f"\n\n**Note:** This information is specific to your "
            f"{vehicle.year} {vehicle.make} {vehicle.model}."
        )

    return response


async def fetch_dtc_information(state: ConversationState, lookup: DtcLookup) -> DtcLookupOutcome:
    """Look up the codes recorded by the last DTC evaluation.

    Args:
        state: Conversation state holding ``last_dtc_evaluation``.
        lookup: Collaborator resolving codes to reference records.

    Returns:
        DtcLookupOutcome: markdown answer and the state with
        ``last_dtc_lookup`` recorded. Lookup errors yield a fixed apology
        and the unchanged state.
    """
    evaluation = state.last_dtc_evaluation
    if evaluation is None or not evaluation.dtc_codes:
        return DtcLookupOutcome(
            output=(
                "I need a valid diagnostic trouble code (DTC) to provide information. "
                "Please provide a code in the format P0123, B0123, C0123, or U0123."
            ),
            state=state,
        )

    codes = [info.code for info in evaluation.dtc_codes]
    records: List[DTCRecord] = []
    sections: List[str] = []
    try:
        for code in codes:
            record = await lookup.lookup(code, state.current_vehicle)
            if record is None:
                sections.append(
                    f"I couldn't find information for the diagnostic code {code}. "
                    "This may be a manufacturer-specific code."
                )
                continue
            records.append(record)
            sections.append(format_dtc_record(record, state.current_vehicle))
    except DtcLookupError as e:
        logger.error(f"Error fetching DTC information: {e}")
        return DtcLookupOutcome(
            output=(
                "I encountered an error while retrieving diagnostic code information. "
                "Please try again with a valid DTC code."
            ),
            state=state,
            error=str(e),
        )

    output = "\n\n".join(sections)
    lookup_record = DtcLookupRecord(
        codes=codes,
        timestamp=datetime.now(timezone.utc).isoformat(),
        result=output,
    )
    return DtcLookupOutcome(
        output=output,
        state=state.model_copy(update={"last_dtc_lookup": lookup_record}),
        records=records,
    )
