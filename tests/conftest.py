"""
Pytest configuration and shared fixtures
"""
import json
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Union

import pytest

from curriculum_sequencer.curriculum_utils import CurriculumConfig, CurriculumLogger, FileManager
from curriculum_sequencer.llm_client import LLMClient
from curriculum_sequencer.records import MetadataRecord


Reply = Union[str, Exception, Callable[[Dict[str, Any]], str]]


class FakeCompletions:
    """Scripted stand-in for ``client.chat.completions``; the last reply repeats."""

    def __init__(self, replies: List[Reply]):
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeOpenAI:
    def __init__(self, replies: List[Reply]):
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def config(tmp_path):
    """Configuration rooted in a temporary directory, offline by default."""
    return CurriculumConfig(
        database_path=str(tmp_path / "database.json"),
        output_dir=str(tmp_path / "curriculum"),
        cache_directory=str(tmp_path / "cache"),
        use_llm=False,
        cache_enabled=False,
        retry_delay=0.0,
        token_encoding="",
    )


@pytest.fixture
def logger():
    return CurriculumLogger("curriculum_tests", "DEBUG")


@pytest.fixture
def file_manager(logger):
    return FileManager(logger)


@pytest.fixture
def write_database(config):
    """Write a content store to ``config.database_path``."""
    def _write(database: Any):
        with open(config.database_path, "w", encoding="utf-8") as f:
            json.dump(database, f)
        return config.database_path
    return _write


@pytest.fixture
def write_metadata(config, file_manager):
    """Write ``metadata.json`` from records, indexed by position."""
    def _write(records: List[MetadataRecord]):
        for position, record in enumerate(records):
            record.index = position
        return file_manager.save_json(
            {"items": [r.to_dict() for r in records], "stats": {"totalItems": len(records)}},
            config.artifact_path("metadata"),
        )
    return _write


@pytest.fixture
def fake_llm(config, logger):
    """Build an ``LLMClient`` backed by scripted replies; ``client.fake`` exposes the calls."""
    def _make(replies: List[Reply]) -> LLMClient:
        config.use_llm = True
        fake = FakeOpenAI(replies)
        client = LLMClient(config, logger, client=fake)
        client.fake = fake.completions
        return client
    return _make


def record(item_id: str, kind: str = "theory", **fields) -> MetadataRecord:
    return MetadataRecord(id=item_id, kind=kind, **fields)
