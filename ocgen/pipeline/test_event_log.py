import json

from ocgen.models import GenerationEvent, GenerationEventType
from ocgen.pipeline.event_log import EventLog


def test_append_stamps_sequence_in_arrival_order():
    log = EventLog()

    first = log.append(GenerationEvent.assistant_text("hello"))
    second = log.append(GenerationEvent.tool_invocation("Write", {"file_path": "view.js"}))

    assert [first.sequence, second.sequence] == [1, 2]
    assert first.received_at is not None
    assert [e.type for e in log] == [
        GenerationEventType.ASSISTANT_TEXT,
        GenerationEventType.TOOL_INVOCATION,
    ]
    assert len(log) == 2


def test_attached_file_receives_json_lines(tmp_path):
    log = EventLog()
    path = log.attach_file(str(tmp_path / "events"), "sbx-1-card.jsonl")

    log.append(GenerationEvent.assistant_text("hello"))
    log.append(GenerationEvent.tool_result("ok", final=True, subtype="success"))

    with open(path, encoding="utf-8") as handle:
        lines = [json.loads(line) for line in handle]
    assert [line["sequence"] for line in lines] == [1, 2]
    assert lines[0]["payload"] == {"text": "hello"}
    assert lines[1]["payload"]["final"] is True


def test_events_reach_disk_before_close_and_close_detaches(tmp_path):
    log = EventLog()
    path = log.attach_file(str(tmp_path), "sbx-1-card.jsonl")

    log.append(GenerationEvent.assistant_text("first"))
    with open(path, encoding="utf-8") as handle:
        assert len(handle.readlines()) == 1

    log.close()
    log.close()
    log.append(GenerationEvent.assistant_text("kept in memory only"))

    with open(path, encoding="utf-8") as handle:
        assert len(handle.readlines()) == 1
    assert len(log) == 2
