"""
Tests for configuration and artifact helpers
"""

import json

import pytest

from curriculum_sequencer.curriculum_utils import (
    CurriculumConfig, CurriculumLogger, create_performance_report, load_config,
    load_items_artifact, save_config
)
from curriculum_sequencer.errors import InputMissingError, MalformedInputError


class TestConfig:
    """Test cases for CurriculumConfig and load_config"""

    def test_defaults(self, monkeypatch):
        for name in ("CURRICULUM_MODEL", "CURRICULUM_USE_LLM", "CURRICULUM_OUTPUT_DIR"):
            monkeypatch.delenv(name, raising=False)

        config = load_config()

        assert config.chunk_strategy == "tokens"
        assert config.output_dir == "curriculum"

    def test_file_values_and_unknown_keys(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"target_chunk_count": 3, "not_a_setting": 1}), encoding="utf-8")

        config = load_config(str(path))

        assert config.target_chunk_count == 3
        assert not hasattr(config, "not_a_setting")

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"openai_model": "from-file", "use_llm": True}), encoding="utf-8")
        monkeypatch.setenv("CURRICULUM_MODEL", "from-env")
        monkeypatch.setenv("CURRICULUM_USE_LLM", "false")

        config = load_config(str(path))

        assert config.openai_model == "from-env"
        assert config.use_llm is False

    def test_invalid_chunk_strategy(self):
        with pytest.raises(ValueError):
            CurriculumConfig(chunk_strategy="random")

    def test_unknown_artifact(self, config):
        with pytest.raises(KeyError):
            config.artifact_path("nonexistent")

    def test_llm_enabled_needs_a_key(self, config, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        config.use_llm = True
        assert not config.llm_enabled()

        config.openai_api_key = "sk-test"
        assert config.llm_enabled()

    def test_saved_config_omits_api_key(self, tmp_path):
        path = tmp_path / "saved" / "config.json"
        save_config(CurriculumConfig(openai_api_key="sk-secret", max_workers=4), str(path))

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["openai_api_key"] == ""
        assert saved["max_workers"] == 4


class TestFileManager:
    """Test cases for artifact I/O"""

    def test_items_artifact_shapes(self, tmp_path, file_manager):
        file_manager.save_json({"items": [{"id": "a"}]}, tmp_path / "wrapped.json")
        file_manager.save_json([{"id": "b"}], tmp_path / "bare.json")
        file_manager.save_json({"other": 1}, tmp_path / "bad.json")

        assert load_items_artifact(file_manager, tmp_path / "wrapped.json") == [{"id": "a"}]
        assert load_items_artifact(file_manager, tmp_path / "bare.json") == [{"id": "b"}]
        with pytest.raises(MalformedInputError):
            load_items_artifact(file_manager, tmp_path / "bad.json")

    def test_missing_and_malformed_required_files(self, tmp_path, file_manager):
        with pytest.raises(InputMissingError):
            file_manager.load_json(tmp_path / "absent.json")

        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedInputError):
            file_manager.load_json(broken)
        assert file_manager.load_optional_json(broken, default=[]) == []

    def test_save_replaces_without_leftovers(self, tmp_path, file_manager):
        target = tmp_path / "out" / "data.json"
        file_manager.save_json({"v": 1}, target)
        file_manager.save_json({"v": 2}, target)

        assert file_manager.load_json(target) == {"v": 2}
        assert [p.name for p in target.parent.iterdir()] == ["data.json"]


class TestPerformance:
    def test_timers_and_report(self, tmp_path):
        logger = CurriculumLogger("curriculum_tests.performance")
        logger.start_timer("phase")
        duration = logger.end_timer("phase")

        assert duration >= 0.0
        assert logger.end_timer("never started") == 0.0

        report = create_performance_report({"a": 1.0, "b": 3.0}, tmp_path / "performance.json")
        assert report["total_duration"] == 4.0
        assert report["metrics"]["slowest_operation"] == "b"
        assert create_performance_report({}, tmp_path / "empty.json") is None
