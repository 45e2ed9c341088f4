"""Reading the lidar JSON configuration file."""

from __future__ import annotations

import json
import logging
import os
import struct
from collections.abc import Mapping
from typing import Any

from lidarfeed.comm import (
    ExtParameter,
    LidarSummaryInfo,
    UserLivoxLidarConfig,
    ip_num_to_string,
    ip_string_to_num,
)

log = logging.getLogger(__name__)

_UINT32_MAX = 0xFFFFFFFF


class ConfigError(ValueError):
    """The configuration file is missing, malformed or incomplete."""


def _load(path: str | os.PathLike) -> Any:
    try:
        with open(path, "rb") as handle:
            return json.load(handle)
    except OSError as exc:
        raise ConfigError(f"cannot open config file: {path}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigError(f"failed to parse config json: {path}") from exc


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _int8(value: int) -> int:
    return (value + 0x80) % 0x100 - 0x80


def _int32(value: int) -> int:
    return (value + 0x80000000) % 0x100000000 - 0x80000000


def _float32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


def _int_field(obj: Mapping, name: str) -> int:
    value = obj[name]
    if not _is_int(value):
        raise ConfigError(f"field {name!r} must be an integer, got {value!r}")
    return value


def parse_summary_info(path: str | os.PathLike) -> LidarSummaryInfo:
    """Read the lidar_summary_info section of the file at ``path``."""
    doc = _load(path)
    summary = doc.get("lidar_summary_info") if isinstance(doc, dict) else None
    if not isinstance(summary, dict):
        raise ConfigError("parse lidar type failed: no lidar_summary_info object")
    lidar_type = summary.get("lidar_type")
    if not _is_int(lidar_type) or not 0 <= lidar_type <= _UINT32_MAX:
        raise ConfigError("parse lidar type failed: lidar_type is not unsigned")
    return LidarSummaryInfo(lidar_type=lidar_type & 0xFF)


def parse_extrinsics(value: Any) -> ExtParameter:
    """Build extrinsic parameters from a JSON object; absent fields are zero."""
    if not isinstance(value, Mapping):
        raise ConfigError("extrinsic_parameter must be an object")
    param = ExtParameter()
    for name in ("roll", "pitch", "yaw"):
        if name in value:
            raw = value[name]
            if not isinstance(raw, (int, float)) or isinstance(raw, bool):
                raise ConfigError(f"field {name!r} must be a number, got {raw!r}")
            setattr(param, name, _float32(float(raw)))
    for name in ("x", "y", "z"):
        if name in value:
            setattr(param, name, _int32(_int_field(value, name)))
    return param


class LivoxLidarConfigParser:
    """Reads the per-lidar entries of the lidar_configs array."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = path

    def parse(self) -> list[UserLivoxLidarConfig]:
        """Return one configuration for each entry that names an ip."""
        doc = _load(self.path)
        entries = doc.get("lidar_configs") if isinstance(doc, dict) else None
        if not isinstance(entries, list) or not entries:
            raise ConfigError("there is no user-defined config")
        configs = [
            self._parse_entry(entry)
            for entry in entries
            if isinstance(entry, dict) and "ip" in entry
        ]
        if not configs:
            raise ConfigError("no valid base configs")
        log.info("successfully parse base config, counts: %d", len(configs))
        return configs

    @staticmethod
    def _parse_entry(entry: Mapping) -> UserLivoxLidarConfig:
        ip = entry["ip"]
        if not isinstance(ip, str):
            raise ConfigError(f"ip must be a string, got {ip!r}")
        try:
            handle = ip_string_to_num(ip)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        config = UserLivoxLidarConfig(handle=handle)
        for name in ("pcl_data_type", "pattern_mode", "blind_spot_set", "dual_emit_en"):
            if name in entry:
                setattr(config, name, _int8(_int_field(entry, name)))

        if "extrinsic_parameter" in entry:
            try:
                config.extrinsic_param = parse_extrinsics(entry["extrinsic_parameter"])
            except ConfigError:
                log.warning(
                    "failed to parse extrinsic parameters, ip: %s",
                    ip_num_to_string(handle),
                )
                config.extrinsic_param = ExtParameter()
        return config