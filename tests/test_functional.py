#!/usr/bin/env python3
"""Functional tests for the Inquiry Router CLI.

These tests drive the CLI as a subprocess, which is how operators use the
router from a terminal.
"""

import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent


def run_cli(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "inquiry_router.cli", *args],
        capture_output=True,
        text=True,
        cwd=ROOT,
        timeout=60,
    )


def test_cli_route_diagnostic_message():
    """Test that a diagnostic message is routed to the diagnostic system."""
    result = run_cli("route", "My check engine light came on")

    assert result.returncode == 0
    assert "Routing Decision" in result.stdout
    assert "VEHICLE_DIAGNOSTICS" in result.stdout
    assert "diagnostic_system" in result.stdout
    assert "INQ-" in result.stdout


def test_cli_route_explicit_request():
    """Test that asking for a technician overrides category routing."""
    result = run_cli("route", "I need to speak with a technician about my car")

    assert result.returncode == 0
    assert "senior_technician" in result.stdout


def test_cli_route_with_history():
    """Test that earlier messages are replayed before routing."""
    result = run_cli(
        "route",
        "Why is the sensor voltage dropping? How does the ecu compensate?",
        "--history",
        "hello there",
    )

    assert result.returncode == 0
    assert "Complexity: high" in result.stdout


def test_cli_codes_lookup():
    """Test that detected codes are looked up in the reference data."""
    result = run_cli("codes", "my scanner shows P0420")

    assert result.returncode == 0
    assert "P0420" in result.stdout
    assert "Catalyst System Efficiency" in result.stdout


def test_cli_codes_without_codes():
    """Test that a message without codes exits with an error status."""
    result = run_cli("codes", "hello there")

    assert result.returncode == 1
    assert "Not DTC-related content" in result.stdout


def test_cli_info_command():
    """Test that the info command lists categories and routes."""
    result = run_cli("info")

    assert result.returncode == 0
    assert "Conversation Categories" in result.stdout
    assert "Explicit Routes" in result.stdout


def test_cli_demo_scenarios():
    """Test that the automated demo scenarios run without crashes."""
    result = run_cli("demo", "--no-interactive")

    assert result.returncode == 0
    assert "Demo Scenario #1:" in result.stdout
    assert "Demo Scenario #2:" in result.stdout
    assert "Demo Scenario #3:" in result.stdout
    assert "Demo Scenario #4:" in result.stdout
    assert "diagnostic_specialist" in result.stdout
    assert "senior_technician" in result.stdout
