from __future__ import annotations

from datetime import datetime, timezone

import pytest

from memsfcr.protocol.dataframe import DataFrame, decode_dataframe
from memsfcr.protocol.errors import DecodeError


def make_80(**overrides) -> bytes:
    f = bytearray(28)
    f[0] = 28
    for i, v in overrides.items():
        f[int(i[1:])] = v
    return bytes(f)


def make_7d(**overrides) -> bytes:
    f = bytearray(32)
    f[0] = 32
    for i, v in overrides.items():
        f[int(i[1:])] = v
    return bytes(f)


def test_decode_scaled_fields():
    d80 = make_80(b1=0x03, b2=0x84, b3=55 + 88, b4=55 + 20, b7=35, b8=139, b10=0x10,
                  b13=0x01, b14=0x02, b16=35 + 5, b18=33, b22=60, b23=0x07, b24=0x08)
    d7d = make_7d(b1=1, b4=147, b6=90, b10=1, b11=0x80, b14=0x04, b31=0x40)
    now = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    df = decode_dataframe(d80, d7d, now=now)

    assert df.time == now.isoformat()
    assert df.engine_rpm == 900
    assert df.coolant_temp == 88
    assert df.ambient_temp == 20
    assert df.map_kpa == 35
    assert df.battery_voltage == pytest.approx(13.9)
    assert df.idle_switch is True
    assert df.idle_hot == 5
    assert df.iac_position == 33
    assert df.ignition_advance == pytest.approx(6.0)
    assert df.coil_time_ms == pytest.approx(0x0708 * 0.002, abs=1e-3)
    assert df.ignition_switch is True
    assert df.air_fuel_ratio == pytest.approx(14.7)
    assert df.lambda_voltage_mv == 450
    assert df.closed_loop is True
    assert df.long_term_fuel_trim == 0x80
    assert df.jack_count == 0x40
    assert df.fault_codes == {"dtc0": 1, "dtc1": 2, "dtc2": 0, "dtc3": 4, "dtc4": 0, "dtc5": 0}


def test_raw_frames_kept_as_hex():
    d80, d7d = make_80(), make_7d()
    df = decode_dataframe(d80, d7d)
    assert df.dataframe_80 == d80.hex().upper()
    assert df.dataframe_7d == d7d.hex().upper()


def test_as_dict_matches_field_names():
    df = decode_dataframe(make_80(), make_7d())
    d = df.as_dict()
    assert list(d.keys()) == DataFrame.field_names()
    assert d["time"] == df.time


@pytest.mark.parametrize(
    "d80,d7d",
    [
        (make_80()[:-1], make_7d()),          # short 0x80
        (make_80(), make_7d() + b"\x00"),     # long 0x7D
        (b"\x1B" + make_80()[1:], make_7d()), # wrong size byte
        (make_80(), b"\x1F" + make_7d()[1:]),
        (b"", make_7d()),
    ],
)
def test_decode_rejects_bad_frames(d80, d7d):
    with pytest.raises(DecodeError):
        decode_dataframe(d80, d7d)
