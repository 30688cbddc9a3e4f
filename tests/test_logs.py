import json

from strike_bridge.logs import NdjsonLogger


def read_records(logger):
    return [json.loads(line) for line in logger.path.read_text(encoding="utf-8").splitlines()]


def test_records_have_sequence_and_fields(tmp_path):
    with NdjsonLogger(str(tmp_path)) as logger:
        logger.status("Bridge starting", {"device_count": 2})
        logger.event("combat_event", device="AA:01", data={"event_type": "slap"})

    records = read_records(logger)
    assert [r["seq"] for r in records] == [1, 2]
    assert records[0]["type"] == "status"
    assert records[1]["device"] == "AA:01"
    assert records[1]["data"] == {"event_type": "slap"}
    assert "hms" in records[1]


def test_debug_filtered_unless_whitelisted(tmp_path):
    logger = NdjsonLogger(str(tmp_path))
    logger.verbose_whitelist.add("raw_frame")
    logger.debug("noise")
    logger.debug("raw_frame", {"hex": "0102"})
    logger.close()

    assert [r["msg"] for r in read_records(logger)] == ["raw_frame"]


def test_verbose_mode_keeps_debug(tmp_path):
    logger = NdjsonLogger(str(tmp_path), file_prefix="verbose")
    logger.mode = "verbose"
    logger.debug("noise")
    logger.close()

    assert logger.path.name.startswith("verbose_")
    assert [r["msg"] for r in read_records(logger)] == ["noise"]


def test_writes_after_close_are_dropped(tmp_path):
    logger = NdjsonLogger(str(tmp_path))
    logger.close()
    logger.error("late")

    assert read_records(logger) == []
