import json

import pytest


def _cells(*occupied):
    return [{"gridEntries": [{"lesson": "x"}] if busy else []} for busy in occupied]


@pytest.fixture
def timetable_doc():
    """Two days with three slots each; BER only teaches on the second day."""
    return {
        "slots": [{"id": 1}, {"id": 2}, {"id": 3}],
        "days": [
            {
                "day": "Mo 02.09.",
                "resources": [
                    {"resource": {"shortName": "MUE"}, "cells": _cells(True, False, True)},
                    {"resource": {"shortName": "ABC"}, "cells": _cells(False, False, False)},
                ],
            },
            {
                "day": "Di 03.09.",
                "resources": [
                    {"resource": {"shortName": "BER"}, "cells": _cells(False, True, False)},
                    {"resource": {"shortName": "MUE"}, "cells": _cells(False, False, False)},
                    {"resource": {"shortName": "MUE"}, "cells": _cells(True, True, True)},
                ],
            },
        ],
    }


@pytest.fixture
def timetable_text(timetable_doc):
    return json.dumps(timetable_doc, indent=2)


@pytest.fixture
def timetable_file(tmp_path, timetable_text):
    path = tmp_path / "stundenplan.json"
    path.write_text(timetable_text, encoding="utf-8")
    return path
