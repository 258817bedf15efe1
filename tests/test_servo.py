import pytest

from autogyro.drivers.servo import PwmChannel, Servo, ServoError, ServoGroup


def make_servo(clock=None):
    sleeps = []
    pwm = PwmChannel()
    kwargs = {"sleep": sleeps.append}
    if clock is not None:
        kwargs["clock"] = clock
    servo = Servo(pwm, **kwargs)
    servo.init()
    return servo, pwm, sleeps


def test_init_configures_pwm_and_centres():
    servo, pwm, sleeps = make_servo()
    assert pwm.divider == 125
    assert pwm.top == 20000
    assert pwm.duty == 1500
    assert sleeps == [0.5]
    assert servo.position == 0.0


def test_extreme_positions_map_to_pulse_limits():
    servo, pwm, _ = make_servo()
    servo.set_position(1.0)
    assert pwm.duty == 2000
    servo.set_position(-1.0)
    assert pwm.duty == 1000
    servo.set_position(5.0)
    assert pwm.duty == 2000
    assert servo.position == 1.0


def test_set_angle_and_angle_property_round_trip():
    servo, pwm, _ = make_servo()
    servo.set_angle(22.5)
    assert pwm.duty == 1750
    assert servo.angle == pytest.approx(22.5)


def test_inverted_servo():
    servo, pwm, _ = make_servo()
    servo.inverted = True
    servo.set_position(1.0)
    assert pwm.duty == 1000
    assert servo.position == -1.0


def test_pulse_width_out_of_range():
    servo, _, _ = make_servo()
    with pytest.raises(ServoError):
        servo.set_pulse_width(999)
    with pytest.raises(ServoError):
        servo.set_pulse_width(2001)


def test_rate_limit_uses_whole_seconds():
    times = iter([0.0, 0.5, 1.5])
    servo, pwm, _ = make_servo(clock=lambda: next(times))
    servo.rate_limit = 0.5
    servo.set_position(0.0)
    servo.set_position(1.0)
    assert servo.position == 0.0
    assert pwm.duty == 1500
    servo.set_position(1.0)
    assert servo.position == pytest.approx(0.5)
    assert pwm.duty == 1750


def test_clearing_rate_limit_allows_full_move():
    times = iter([0.0, 0.1])
    servo, pwm, _ = make_servo(clock=lambda: next(times))
    servo.rate_limit = 0.1
    servo.set_position(0.0)
    servo.rate_limit = None
    servo.set_position(-1.0)
    assert servo.position == -1.0
    assert pwm.duty == 1000


def test_move_to_reaches_target():
    servo, pwm, sleeps = make_servo()
    sleeps.clear()
    servo.move_to(-1.0, 100)
    assert servo.position == pytest.approx(-1.0)
    assert pwm.duty == 1000
    assert sleeps and all(s == 0.02 for s in sleeps)
    assert len(sleeps) == 6


def test_calibrate_sweeps_and_returns_to_centre():
    servo, pwm, sleeps = make_servo()
    duties = []
    original = pwm.set_duty_cycle

    def record(duty):
        duties.append(duty)
        original(duty)

    pwm.set_duty_cycle = record
    sleeps.clear()
    servo.calibrate()
    assert duties == [1000, 1500, 2000, 1500]
    assert sleeps == [3.0, 3.0, 3.0]
    assert servo.position == 0.0


def test_disable_zeroes_duty():
    servo, pwm, _ = make_servo()
    servo.disable()
    assert pwm.duty == 0


def test_pwm_rejects_duty_above_top():
    pwm = PwmChannel()
    pwm.configure(divider=125, top=20000)
    with pytest.raises(ValueError):
        pwm.set_duty_cycle(20001)
    assert pwm.max_duty_cycle() == 20000


def test_group_capacity_enforced():
    group = ServoGroup(1)
    group.add_servo(make_servo()[0])
    with pytest.raises(ServoError):
        group.add_servo(make_servo()[0])
    assert len(group.servos) == 1


def test_group_set_positions():
    first, first_pwm, _ = make_servo()
    second, second_pwm, _ = make_servo()
    group = ServoGroup(2)
    group.add_servo(first)
    group.add_servo(second)
    group.set_positions([1.0, -1.0])
    assert first_pwm.duty == 2000
    assert second_pwm.duty == 1000
    with pytest.raises(ServoError):
        group.set_positions([0.0])


def test_group_move_all_to():
    first, _, _ = make_servo()
    second, _, _ = make_servo()
    group = ServoGroup(2)
    group.add_servo(first)
    group.add_servo(second)
    group.move_all_to([1.0, -1.0], 20)
    assert first.position == pytest.approx(1.0)
    assert second.position == pytest.approx(-1.0)
    with pytest.raises(ServoError):
        group.move_all_to([1.0], 20)