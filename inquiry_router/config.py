"""Configuration module for the inquiry router.

This module holds two kinds of configuration:

- Runtime settings (logging level, DTC API endpoint) read from environment
  variables, so deployments can change them without code changes.
- The keyword tables that drive classification. They are static data,
  loaded once at import time into a frozen model and injected into the
  classifier.
"""

import os
from pathlib import Path
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict

from .models import ConversationCategory


class DtcApiConfig(BaseModel):
    """Settings for the remote DTC database.

    Attributes:
        endpoint: URL of the DTC database API.
        use_live_api: Query the remote API instead of the bundled reference data.
        timeout: Request timeout in seconds.
    """

    endpoint: str = os.getenv("DTC_API_ENDPOINT", "https://api.yourservice.com/dtc-database")
    use_live_api: bool = os.getenv("DTC_USE_LIVE_API", "").lower() in ("1", "true", "yes")
    timeout: float = float(os.getenv("DTC_API_TIMEOUT", "10.0"))


class RouterConfig(BaseModel):
    """Main configuration for the inquiry router.

    Attributes:
        log_level: Logging level name applied by the CLI.
        dtc_api: Remote DTC database settings.
        reference_data_path: JSON file with bundled DTC reference records.
    """

    log_level: str = os.getenv("ROUTER_LOG_LEVEL", "WARNING")
    dtc_api: DtcApiConfig = DtcApiConfig()
    reference_data_path: Path = Path(__file__).parent / "data" / "dtc_reference.json"


class KeywordTables(BaseModel):
    """Keyword tables used by the classifier.

    Category indicators are scored in declaration order; on an exact tie the
    category declared first keeps the lead.
    """

    model_config = ConfigDict(frozen=True)

    category_indicators: Dict[ConversationCategory, Tuple[str, ...]]
    high_urgency: Tuple[str, ...]
    low_urgency: Tuple[str, ...]
    technical_terms: Tuple[str, ...]
    complex_question_terms: Tuple[str, ...]
    explicit_routes: Tuple[Tuple[str, Tuple[str, ...]], ...]
    route_specialists: Dict[str, str]
    long_message_threshold: int = 200


DEFAULT_KEYWORDS = KeywordTables(
    category_indicators={
        ConversationCategory.VEHICLE_DIAGNOSTICS: (
            "check engine light", "check light", "engine light", "code", "dtc",
            "diagnostic", "scanner", "scan tool", "trouble code", "obd", "symptoms",
            "warning light", "cel", "malfunction indicator", "misfire", "stalling",
        ),
        ConversationCategory.PARTS_INFORMATION: (
            "part", "parts", "replacement", "price", "pricing", "cost", "buy",
            "purchase", "available", "in stock", "order", "aftermarket", "oem",
            "brand", "manufacturer", "warranty", "catalog", "alternative",
        ),
        ConversationCategory.WARRANTY_SERVICE: (
            "customer", "account", "service history", "last visit", "appointment",
            "schedule", "warranty claim", "invoice", "receipt", "contact", "complaint",
            "satisfaction", "feedback", "loyalty", "discount", "membership",
        ),
        ConversationCategory.REPAIR_GUIDANCE: (
            "repair", "procedure", "replace", "install", "installation", "remove",
            "torque spec", "specification", "manual", "guide", "step by step",
            "instruction", "diagram", "schematic", "wiring", "disassemble", "assemble",
        ),
        ConversationCategory.MAINTENANCE_ADVICE: (
            "how does", "why does", "what causes", "explain", "understand",
            "technical", "function", "work", "system", "design", "engineering",
            "principle", "theory", "concept", "operation", "mechanism",
        ),
    },
    high_urgency=(
        "urgent", "emergency", "immediately", "asap", "critical", "safety",
        "dangerous", "stuck", "stranded",
    ),
    low_urgency=("when possible", "sometime", "no rush", "curious", "interested"),
    technical_terms=(
        "diagnostic", "circuit", "sensor", "module", "ecu", "pcm", "tcm", "bcm",
        "voltage", "resistance", "amperage", "pressure", "valve", "actuator",
        "hydraulic", "pneumatic", "electrical", "mechanical", "calibration",
    ),
    complex_question_terms=("why", "how", "explain", "compare"),
    explicit_routes=(
        ("technician", ("speak", "talk", "connect", "technician", "mechanic")),
        ("customer_service", ("customer service", "support team", "representative")),
        ("parts_department", ("parts department", "parts specialist")),
        ("service_advisor", ("service advisor", "service manager")),
    ),
    route_specialists={
        "technician": "senior_technician",
        "customer_service": "customer_service_rep",
        "parts_department": "parts_specialist",
        "service_advisor": "service_manager",
    },
)
