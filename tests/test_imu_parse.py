import struct

from strike_bridge.ble.imu_parse import IMU_FRAME_SIZE, now_ms, parse_imu_frame


def make_frame(limb_id, battery, ax, ay, az, gx, gy, gz):
    return struct.pack('<BB6h', limb_id, battery, ax, ay, az, gx, gy, gz)


def test_parse_frame_fields():
    payload = make_frame(3, 87, 1200, -1, -32768, 32767, 250, -250)

    sample = parse_imu_frame(payload, timestamp_ms=1234)

    assert sample is not None
    assert sample.limb_id == 3
    assert sample.battery_level == 87
    assert (sample.acc_x, sample.acc_y, sample.acc_z) == (1200, -1, -32768)
    assert (sample.gyro_x, sample.gyro_y, sample.gyro_z) == (32767, 250, -250)
    assert sample.timestamp == 1234


def test_short_payloads_dropped():
    frame = make_frame(1, 50, 1, 2, 3, 4, 5, 6)
    for length in range(IMU_FRAME_SIZE):
        assert parse_imu_frame(frame[:length]) is None
    assert parse_imu_frame(b"") is None


def test_trailing_bytes_ignored():
    payload = make_frame(2, 10, 100, 200, 300, 400, 500, 600) + b'\xff\xff\xff'

    sample = parse_imu_frame(payload, timestamp_ms=1)

    assert sample.gyro_z == 600


def test_receive_timestamp_applied():
    before = now_ms()
    sample = parse_imu_frame(bytearray(make_frame(1, 99, 0, 0, 0, 0, 0, 0)))
    after = now_ms()

    assert before <= sample.timestamp <= after


def test_unknown_role_code_still_decodes():
    # role validation belongs to the detector
    sample = parse_imu_frame(make_frame(9, 0, 0, 0, 0, 0, 0, 0), timestamp_ms=0)
    assert sample.limb_id == 9
