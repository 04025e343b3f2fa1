"""Skill state persistence: one JSON file per subject with ordered attempt history."""

import fcntl
import json
import os
import re
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import structlog

from mastery_engine.config import Settings
from mastery_engine.errors import ValidationError
from mastery_engine.models.skill import SkillState
from mastery_engine.tracking import bkt

logger = structlog.get_logger()

_SUBJECT_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _subject_path(mastery_dir: Path, subject_id: str) -> Path:
    if not _SUBJECT_ID_RE.match(subject_id):
        raise ValidationError(f"Invalid subject ID: {subject_id!r}", field="subject_id")
    return mastery_dir / f"{subject_id}.json"


def _read(path: Path) -> dict:
    if not path.exists():
        return {"topics": {}}
    return json.loads(path.read_text())


@contextmanager
def _locked(path: Path) -> Iterator[None]:
    """Hold an exclusive lock for a subject file's read-modify-write."""
    lock_path = path.with_name(path.name + ".lock")
    with open(lock_path, "w") as lock_file:
        fcntl.flock(lock_file, fcntl.LOCK_EX)
        yield


def _write(path: Path, data: dict) -> None:
    with tempfile.NamedTemporaryFile(
        "w", dir=path.parent, delete=False, suffix=".json"
    ) as tmp:
        json.dump(data, tmp, indent=2)
    os.replace(tmp.name, path)


def _entry_state(entry: dict) -> SkillState:
    return SkillState.model_validate(entry["state"])


def load_skill_states(mastery_dir: Path, subject_id: str) -> list[SkillState]:
    """All skill states stored for a subject (empty if none)."""
    data = _read(_subject_path(mastery_dir, subject_id))
    return [_entry_state(entry) for entry in data["topics"].values()]


def get_skill_state(mastery_dir: Path, subject_id: str, topic: str) -> SkillState | None:
    data = _read(_subject_path(mastery_dir, subject_id))
    entry = data["topics"].get(topic)
    return _entry_state(entry) if entry else None


def read_attempt_history(mastery_dir: Path, subject_id: str, topic: str) -> list[bool]:
    """Ordered answers recorded for a topic."""
    data = _read(_subject_path(mastery_dir, subject_id))
    entry = data["topics"].get(topic)
    return list(entry["history"]) if entry else []


def record_attempts(
    mastery_dir: Path,
    subject_id: str,
    topic: str,
    answers: Sequence[bool],
    at: datetime | None = None,
    settings: Settings | None = None,
) -> SkillState:
    """Apply answers to a topic's state and append them to its history.

    Creates the topic on first observation, with BKT defaults from ``settings``
    (the process-wide settings if omitted). An empty answer list leaves the
    stored state untouched.
    """
    path = _subject_path(mastery_dir, subject_id)
    with _locked(path):
        data = _read(path)
        entry = data["topics"].get(topic)
        if entry:
            state = _entry_state(entry)
            history = list(entry["history"])
        else:
            state = bkt.new_skill_state(topic, settings=settings)
            history = []

        if not answers:
            return state

        state = bkt.batch_update(state, answers, at=at)
        history.extend(bool(a) for a in answers)
        data["topics"][topic] = {
            "state": state.model_dump(mode="json"),
            "history": history,
        }
        _write(path, data)

    logger.info(
        "skill_state_recorded",
        subject_id=subject_id,
        topic=topic,
        answers=len(answers),
        p_known=round(state.p_known, 4),
        mastery_level=state.mastery_level,
    )
    return state


def recompute_skill_state(mastery_dir: Path, subject_id: str, topic: str) -> SkillState:
    """Rebuild a topic's state by replaying its stored history in order."""
    path = _subject_path(mastery_dir, subject_id)
    with _locked(path):
        data = _read(path)
        entry = data["topics"].get(topic)
        if not entry:
            raise ValidationError(f"No mastery record for topic {topic!r}", field="topic")
        state = bkt.replay_history(_entry_state(entry), entry["history"])
        entry["state"] = state.model_dump(mode="json")
        _write(path, data)
    return state
