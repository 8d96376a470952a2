#!/usr/bin/env python3
"""Simple script to verify config.example.yaml structure without the app installed."""

import yaml
from pathlib import Path

KNOWN_SECTIONS = {
    "business": dict,
    "logging": dict,
    "jobs": dict,
    "mock": dict,
    "scheduler": dict,
    "notification_defaults": dict,
}

NOTIFICATION_TYPES = [
    "booking_confirmation",
    "appointment_reminder",
    "appointment_cancelled",
    "retention_reminder",
    "waitlist_offer",
]


def verify_config_structure(path="config.example.yaml"):
    """Verify a config file has the expected structure."""
    config_file = Path(path)

    if not config_file.exists():
        print(f"✗ {config_file} not found")
        return False

    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        print(f"✗ Failed to parse {config_file}: {e}")
        return False

    errors = []

    if not isinstance(config, dict):
        errors.append("Top level must be a mapping")
        config = {}

    for key in config:
        if key not in KNOWN_SECTIONS:
            errors.append(f"Unknown section: {key}")

    for key, expected_type in KNOWN_SECTIONS.items():
        if key in config and not isinstance(config[key], expected_type):
            errors.append(f"'{key}' must be of type {expected_type.__name__}")

    defaults = config.get('notification_defaults') or {}
    if isinstance(defaults, dict):
        for type_name, values in defaults.items():
            if type_name not in NOTIFICATION_TYPES:
                errors.append(f"notification_defaults has unknown type: {type_name}")
                continue
            if not isinstance(values, dict):
                errors.append(f"notification_defaults.{type_name} must be a dictionary")
                continue

            cron = values.get('schedule_cron')
            if cron is not None and (not isinstance(cron, str) or len(cron.split()) != 5):
                errors.append(f"notification_defaults.{type_name}.schedule_cron must have 5 fields")

            delays = values.get('retry_delays_seconds')
            if delays is not None and (
                not isinstance(delays, list) or not all(isinstance(d, int) and d >= 0 for d in delays)
            ):
                errors.append(f"notification_defaults.{type_name}.retry_delays_seconds must be non-negative integers")

    scheduler = config.get('scheduler') or {}
    if isinstance(scheduler, dict) and 'retry_cron' in scheduler:
        if not isinstance(scheduler['retry_cron'], str) or len(scheduler['retry_cron'].split()) != 5:
            errors.append("scheduler.retry_cron must have 5 fields")

    if errors:
        print(f"✗ {config_file} validation failed:")
        for error in errors:
            print(f"  - {error}")
        return False
    else:
        print(f"✓ {config_file} structure is valid")
        print(f"  - Sections: {', '.join(sorted(config)) or 'none (built-in defaults)'}")
        print(f"  - Types with defaults: {len(defaults) if isinstance(defaults, dict) else 0}")
        print(f"  - Retry cadence: {scheduler.get('retry_cron', '*/5 * * * * (default)')}")
        return True


if __name__ == "__main__":
    import sys
    success = verify_config_structure(sys.argv[1] if len(sys.argv) > 1 else "config.example.yaml")
    sys.exit(0 if success else 1)
