import pytest

from autogyro.config.hardware import DSHOT_TYPE, DshotSpeed


@pytest.mark.parametrize(
    "speed, period",
    [
        (DshotSpeed.DSHOT150, 6667),
        (DshotSpeed.DSHOT300, 3333),
        (DshotSpeed.DSHOT600, 1667),
        (DshotSpeed.DSHOT1200, 833),
    ],
)
def test_bit_period_ns(speed, period):
    assert speed.bit_period_ns() == period


def test_faster_speeds_have_shorter_bits():
    periods = [
        s.bit_period_ns()
        for s in (
            DshotSpeed.DSHOT150,
            DshotSpeed.DSHOT300,
            DshotSpeed.DSHOT600,
            DshotSpeed.DSHOT1200,
        )
    ]
    assert periods == sorted(periods, reverse=True)


def test_configured_dshot_type_period():
    assert DSHOT_TYPE.bit_period_ns() == DshotSpeed.DSHOT600.bit_period_ns()


def test_lookup_by_name():
    assert DshotSpeed("DShot300") is DshotSpeed.DSHOT300
    with pytest.raises(ValueError):
        DshotSpeed("DShot9000")