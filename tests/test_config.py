import json

import pytest

from lidarfeed.comm import ExtParameter, ip_string_to_num
from lidarfeed.config import (
    ConfigError,
    LivoxLidarConfigParser,
    parse_extrinsics,
    parse_summary_info,
)


def write(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return path


def sample_doc():
    return {
        "lidar_summary_info": {"lidar_type": 8},
        "lidar_configs": [
            {
                "ip": "192.168.1.12",
                "pcl_data_type": 1,
                "pattern_mode": 0,
                "extrinsic_parameter": {
                    "roll": 0.5,
                    "pitch": 0.0,
                    "yaw": 90.0,
                    "x": 10,
                    "y": -20,
                    "z": 30,
                },
            }
        ],
    }


def test_summary_info_reads_lidar_type(tmp_path):
    info = parse_summary_info(write(tmp_path, sample_doc()))
    assert info.lidar_type == 8


def test_summary_info_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        parse_summary_info(tmp_path / "absent.json")


def test_summary_info_bad_json_raises(tmp_path):
    with pytest.raises(ConfigError):
        parse_summary_info(write(tmp_path, "{not json"))


def test_summary_info_missing_section_raises(tmp_path):
    with pytest.raises(ConfigError):
        parse_summary_info(write(tmp_path, {"lidar_configs": []}))


@pytest.mark.parametrize("value", [-1, "8", 1.5, True])
def test_summary_info_rejects_non_unsigned(tmp_path, value):
    with pytest.raises(ConfigError):
        parse_summary_info(write(tmp_path, {"lidar_summary_info": {"lidar_type": value}}))


def test_parse_extrinsics_defaults_to_zero():
    assert parse_extrinsics({}) == ExtParameter()


def test_parse_extrinsics_reads_fields():
    param = parse_extrinsics({"roll": 1.5, "yaw": -45.0, "x": 7, "z": -3})
    assert param == ExtParameter(roll=1.5, pitch=0.0, yaw=-45.0, x=7, y=0, z=-3)


def test_parse_extrinsics_rejects_non_object():
    with pytest.raises(ConfigError):
        parse_extrinsics([1, 2, 3])


def test_parser_reads_entry(tmp_path):
    configs = LivoxLidarConfigParser(write(tmp_path, sample_doc())).parse()
    assert len(configs) == 1
    config = configs[0]
    assert config.handle == ip_string_to_num("192.168.1.12")
    assert config.pcl_data_type == 1
    assert config.pattern_mode == 0
    assert config.blind_spot_set == -1
    assert config.dual_emit_en == -1
    assert config.extrinsic_param == ExtParameter(
        roll=0.5, pitch=0.0, yaw=90.0, x=10, y=-20, z=30
    )
    assert config.set_bits == 0 and config.get_bits == 0


def test_parser_skips_entries_without_ip(tmp_path):
    doc = {"lidar_configs": [{"pcl_data_type": 1}, {"ip": "10.0.0.1"}]}
    configs = LivoxLidarConfigParser(write(tmp_path, doc)).parse()
    assert [c.handle for c in configs] == [ip_string_to_num("10.0.0.1")]


def test_parser_invalid_extrinsics_fall_back_to_zero(tmp_path):
    doc = {"lidar_configs": [{"ip": "10.0.0.1", "extrinsic_parameter": "bad"}]}
    configs = LivoxLidarConfigParser(write(tmp_path, doc)).parse()
    assert configs[0].extrinsic_param == ExtParameter()


def test_parser_wraps_values_to_signed_byte(tmp_path):
    doc = {"lidar_configs": [{"ip": "10.0.0.1", "blind_spot_set": 200}]}
    configs = LivoxLidarConfigParser(write(tmp_path, doc)).parse()
    assert configs[0].blind_spot_set == -56


@pytest.mark.parametrize(
    "doc",
    [
        {},
        {"lidar_configs": []},
        {"lidar_configs": {"ip": "10.0.0.1"}},
        {"lidar_configs": [{"pattern_mode": 0}]},
    ],
)
def test_parser_without_usable_configs_raises(tmp_path, doc):
    with pytest.raises(ConfigError):
        LivoxLidarConfigParser(write(tmp_path, doc)).parse()


def test_parser_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        LivoxLidarConfigParser(tmp_path / "absent.json").parse()


def test_parser_invalid_ip_raises(tmp_path):
    doc = {"lidar_configs": [{"ip": "not-an-ip"}]}
    with pytest.raises(ConfigError):
        LivoxLidarConfigParser(write(tmp_path, doc)).parse()


def test_parser_non_integer_field_raises(tmp_path):
    doc = {"lidar_configs": [{"ip": "10.0.0.1", "pattern_mode": "fast"}]}
    with pytest.raises(ConfigError):
        LivoxLidarConfigParser(write(tmp_path, doc)).parse()