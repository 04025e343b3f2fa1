"""Smoke tests for skill state persistence."""

import json
from datetime import datetime

import pytest

from mastery_engine.config import Settings
from mastery_engine.errors import ValidationError
from mastery_engine.storage.skill_store import (
    get_skill_state,
    load_skill_states,
    read_attempt_history,
    record_attempts,
    recompute_skill_state,
)

AT = datetime(2025, 3, 1, 12, 0)


class TestLoad:
    def test_unknown_subject_is_empty(self, tmp_path):
        assert load_skill_states(tmp_path, "biology") == []
        assert get_skill_state(tmp_path, "biology", "Cells") is None
        assert read_attempt_history(tmp_path, "biology", "Cells") == []

    @pytest.mark.parametrize("subject_id", ["../etc", "a/b", "", "bio.json"])
    def test_invalid_subject_id(self, tmp_path, subject_id):
        with pytest.raises(ValidationError):
            load_skill_states(tmp_path, subject_id)


class TestRecordAttempts:
    def test_first_attempt_creates_topic(self, tmp_path):
        state = record_attempts(tmp_path, "biology", "Cells", [True], at=AT)

        assert state.p_known == pytest.approx(0.6067, abs=1e-4)
        assert state.total_attempts == 1
        assert state.last_practiced_at == AT
        assert (tmp_path / "biology.json").exists()
        assert get_skill_state(tmp_path, "biology", "Cells") == state

    def test_attempts_accumulate_in_order(self, tmp_path):
        record_attempts(tmp_path, "biology", "Cells", [True, False])
        state = record_attempts(tmp_path, "biology", "Cells", [False, True, True])

        assert state.total_attempts == 5
        assert state.correct_count == 3
        assert read_attempt_history(tmp_path, "biology", "Cells") == [
            True, False, False, True, True,
        ]

    def test_topics_are_independent(self, tmp_path):
        record_attempts(tmp_path, "biology", "Cells", [True])
        record_attempts(tmp_path, "biology", "Genetics", [False])

        states = {s.topic_name: s for s in load_skill_states(tmp_path, "biology")}
        assert set(states) == {"Cells", "Genetics"}
        assert states["Cells"].mastery_level == 61
        assert states["Genetics"].mastery_level == 5

    def test_cold_start_uses_given_settings(self, tmp_path):
        settings = Settings(project_root=tmp_path, bkt_p_init=0.5, bkt_p_slip=0.2)
        state = record_attempts(tmp_path, "biology", "Cells", [], settings=settings)
        assert state.p_init == 0.5
        assert state.p_known == 0.5

        state = record_attempts(tmp_path, "biology", "Cells", [True], settings=settings)
        assert state.p_slip == 0.2
        assert state.p_known == pytest.approx(0.4 / 0.525)

    def test_empty_answers_do_not_write(self, tmp_path):
        state = record_attempts(tmp_path, "biology", "Cells", [])
        assert state.p_known == 0.3
        assert state.total_attempts == 0
        assert not (tmp_path / "biology.json").exists()

    def test_file_layout(self, tmp_path):
        record_attempts(tmp_path, "biology", "Cells", [True, False])
        data = json.loads((tmp_path / "biology.json").read_text())
        entry = data["topics"]["Cells"]
        assert entry["history"] == [True, False]
        assert entry["state"]["total_attempts"] == 2
        assert entry["state"]["mastery_level"] == 17


class TestRecompute:
    def test_replay_matches_recorded_state(self, tmp_path):
        recorded = record_attempts(tmp_path, "biology", "Cells", [True, False, True, True], at=AT)
        recomputed = recompute_skill_state(tmp_path, "biology", "Cells")

        assert recomputed.p_known == pytest.approx(recorded.p_known)
        assert recomputed.total_attempts == recorded.total_attempts
        assert get_skill_state(tmp_path, "biology", "Cells") == recomputed

    def test_unknown_topic(self, tmp_path):
        with pytest.raises(ValidationError):
            recompute_skill_state(tmp_path, "biology", "Cells")
