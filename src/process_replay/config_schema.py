"""
JSON schemas for configuration validation.
"""

RECORDING_SCHEMA = {
    "type": "object",
    "properties": {
        "manifest_name": {"type": "string", "minLength": 1},
        "skippable_executables": {"type": "array", "items": {"type": "string"}},
        "flush_timeout": {"type": "number", "minimum": 0.0},
    },
    "additionalProperties": False,
}

REPLAY_SCHEMA = {
    "type": "object",
    "properties": {
        "manifest_name": {"type": "string", "minLength": 1},
        "stream_delay": {"type": "number", "minimum": 0.0},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
        "log_invocations": {"type": "boolean"},
        "log_drains": {"type": "boolean"},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "recording": RECORDING_SCHEMA,
        "replay": REPLAY_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
    "additionalProperties": False,
}


__all__ = ["CONFIG_SCHEMA", "RECORDING_SCHEMA", "REPLAY_SCHEMA", "LOGGING_SCHEMA"]
