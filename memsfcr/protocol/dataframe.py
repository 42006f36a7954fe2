# memsfcr/protocol/dataframe.py
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .defs import DATAFRAME_7D, DATAFRAME_80
from .errors import DecodeError


def _u16(buf: bytes, i: int) -> int:
    return (buf[i] << 8) | buf[i + 1]


@dataclass(frozen=True)
class DataFrame:
    """
    One decoded snapshot of ECU sensor/actuator state.

    Built from the 0x80 and 0x7D replies of a single data poll.
    Multi-byte fields are big-endian on the wire.
    """

    time: str

    # 0x80 frame
    engine_rpm: int
    coolant_temp: int
    ambient_temp: int
    intake_air_temp: int
    fuel_temp: int
    map_kpa: int
    battery_voltage: float
    throttle_pot_voltage: float
    idle_switch: bool
    aircon_switch: bool
    park_neutral_switch: bool
    dtc0: int
    dtc1: int
    idle_set_point: float
    idle_hot: int
    iac_position: int
    idle_speed_deviation: int
    ignition_advance_offset_80: int
    ignition_advance: float
    coil_time_ms: float
    crankshaft_position_sensor: int

    # 0x7D frame
    ignition_switch: bool
    throttle_angle: float
    air_fuel_ratio: float
    dtc2: int
    lambda_voltage_mv: int
    lambda_frequency: int
    lambda_duty_cycle: int
    lambda_status: int
    closed_loop: bool
    long_term_fuel_trim: int
    short_term_fuel_trim: int
    carbon_canister_purge_valve: int
    dtc3: int
    idle_base_position: int
    dtc4: int
    ignition_advance_offset_7d: int
    idle_speed_offset: int
    idle_error: int
    dtc5: int
    jack_count: int

    dataframe_80: str
    dataframe_7d: str

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @property
    def fault_codes(self) -> Dict[str, int]:
        return {
            "dtc0": self.dtc0,
            "dtc1": self.dtc1,
            "dtc2": self.dtc2,
            "dtc3": self.dtc3,
            "dtc4": self.dtc4,
            "dtc5": self.dtc5,
        }


def decode_dataframe(d80: bytes, d7d: bytes, *, now: Optional[datetime] = None) -> DataFrame:
    """
    Decode the payloads (echo byte already stripped) of a 0x80 + 0x7D pair.
    """
    if len(d80) != DATAFRAME_80.reply_len or d80[0] != DATAFRAME_80.reply_len:
        raise DecodeError(f"bad 0x80 frame (len={len(d80)} size_byte={d80[0] if d80 else None})")
    if len(d7d) != DATAFRAME_7D.reply_len or d7d[0] != DATAFRAME_7D.reply_len:
        raise DecodeError(f"bad 0x7D frame (len={len(d7d)} size_byte={d7d[0] if d7d else None})")

    ts = (now or datetime.now(timezone.utc)).isoformat()

    return DataFrame(
        time=ts,
        engine_rpm=_u16(d80, 1),
        coolant_temp=d80[3] - 55,
        ambient_temp=d80[4] - 55,
        intake_air_temp=d80[5] - 55,
        fuel_temp=d80[6] - 55,
        map_kpa=d80[7],
        battery_voltage=d80[8] / 10.0,
        throttle_pot_voltage=round(d80[9] * 0.02, 3),
        idle_switch=(d80[10] & 0x10) != 0,
        aircon_switch=d80[11] != 0,
        park_neutral_switch=d80[12] != 0,
        dtc0=d80[13],
        dtc1=d80[14],
        idle_set_point=round(d80[15] * 6.1, 1),
        idle_hot=d80[16] - 35,
        iac_position=d80[18],
        idle_speed_deviation=_u16(d80, 19),
        ignition_advance_offset_80=d80[21],
        ignition_advance=(d80[22] / 2.0) - 24.0,
        coil_time_ms=round(_u16(d80, 23) * 0.002, 3),
        crankshaft_position_sensor=d80[25],
        ignition_switch=d7d[1] != 0,
        throttle_angle=round(d7d[2] * 6 / 10.0, 1),
        air_fuel_ratio=d7d[4] / 10.0,
        dtc2=d7d[5],
        lambda_voltage_mv=d7d[6] * 5,
        lambda_frequency=d7d[7],
        lambda_duty_cycle=d7d[8],
        lambda_status=d7d[9],
        closed_loop=d7d[10] != 0,
        long_term_fuel_trim=d7d[11],
        short_term_fuel_trim=d7d[12],
        carbon_canister_purge_valve=d7d[13],
        dtc3=d7d[14],
        idle_base_position=d7d[15],
        dtc4=d7d[17],
        ignition_advance_offset_7d=d7d[18],
        idle_speed_offset=d7d[19],
        idle_error=d7d[20],
        dtc5=d7d[22],
        jack_count=d7d[31],
        dataframe_80=d80.hex().upper(),
        dataframe_7d=d7d.hex().upper(),
    )
