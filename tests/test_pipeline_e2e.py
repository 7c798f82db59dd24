"""
End-to-end tests for CurriculumPipeline, run offline
"""

from pathlib import Path

import pytest

from curriculum_sequencer.pipeline import CurriculumPipeline


CONTAINERS = 20

# Tech0 -> Tech1 -> Tech0: acyclic items, cyclic modules
CROSS_TECHNOLOGY = {"c1-theory-1": "c0-theory-0", "c4-theory-1": "c1-theory-1"}


def build_store():
    """20 containers of 2 theory items, 2 questions and 1 task across 4 technologies."""
    store = []
    for c in range(CONTAINERS):
        technology = f"Tech{c % 4}"
        questions = [
            {"id": f"c{c}-question-{k}", "topic": f"Topic {c}", "technology": technology,
             "interviewFrequency": k + 1}
            for k in range(2)
        ]
        tasks = [{"id": f"c{c}-task-0", "title": f"Task {c}", "technology": technology,
                  "complexity": 3}]
        theory = []
        for k in range(2):
            entry = {
                "id": f"c{c}-theory-{k}",
                "title": f"Theory {c}.{k}",
                "technology": technology,
                "complexity": (c + k) % 5 + 1,
                "tags": [technology.lower(), f"topic-{c}"],
                "relatedQuestions": [questions[k]["id"]],
                "relatedTasks": [tasks[0]["id"]] if k == 0 else [],
            }
            if k == 0 and c >= 4 and c < 14:
                entry["prerequisites"] = [f"c{c - 4}-theory-0"]
            if entry["id"] in CROSS_TECHNOLOGY:
                entry["prerequisites"] = [CROSS_TECHNOLOGY[entry["id"]]]
            theory.append(entry)
        store.append({"id": f"container-{c}", "content": {"theory": theory, "questions": questions,
                                                           "tasks": tasks}})
    return store


@pytest.fixture
def pipeline(config, logger, write_database):
    config.chunk_strategy = "even"
    config.target_chunk_count = 4
    write_database(build_store())
    return CurriculumPipeline(config, logger)


class TestCurriculumPipeline:
    """Test cases for full and partial pipeline runs"""

    def test_full_run(self, config, pipeline, file_manager):
        assert pipeline.run_pipeline() is True
        assert all(result.success for result in pipeline.execution_results)

        metadata = file_manager.load_json(config.artifact_path("metadata"))["items"]
        curriculum = file_manager.load_json(config.artifact_path("curriculum"))["items"]
        assert len(metadata) == 100
        assert len(curriculum) == 100
        assert sorted(i["id"] for i in curriculum) == sorted(i["id"] for i in metadata)
        assert not any(i.get("isFallback") for i in curriculum)

        position = {item["id"]: pos for pos, item in enumerate(curriculum)}
        dependents = [i for i in metadata if i.get("prerequisites")]
        assert len(dependents) == 12
        for item in dependents:
            for prereq in item["prerequisites"]:
                assert position[prereq] < position[item["id"]]

        report = file_manager.load_json(config.artifact_path("quality_report"))["metrics"]
        assert report["orderingScore"] == 1.0
        assert report["prerequisiteViolations"] == []
        assert report["fallbackItems"] == 0

        assert config.artifact_path("performance_report").exists()
        assert pipeline.status()["nextStep"] is None

    def test_related_items_follow_their_theory(self, config, pipeline, file_manager):
        pipeline.run_pipeline()

        curriculum = file_manager.load_json(config.artifact_path("curriculum"))["items"]
        position = {item["id"]: pos for pos, item in enumerate(curriculum)}
        related = [i for i in curriculum if i["isRelatedItem"]]
        assert related
        for item in related:
            pos = position[item["id"]]
            while curriculum[pos - 1]["isRelatedItem"]:
                pos -= 1
            assert curriculum[pos - 1]["type"] == "theory"

    def test_dry_run_writes_nothing(self, config, pipeline):
        assert pipeline.run_pipeline(dry_run=True) is True

        assert len(pipeline.execution_results) == 10
        assert not Path(config.output_dir).exists()

    def test_missing_input_stops_the_run(self, config, logger):
        pipeline = CurriculumPipeline(config, logger)

        assert pipeline.run_pipeline() is False

        [result] = pipeline.execution_results
        assert result.error_message == "Input file missing"
        assert not config.artifact_path("metadata").exists()

    def test_resume_from_a_later_step(self, config, logger, pipeline):
        assert pipeline.run_pipeline(end_step=5) is True
        assert pipeline.status()["nextStep"] == 6

        resumed = CurriculumPipeline(config, logger)
        assert resumed.run_pipeline(start_step=6) is True
        assert [r.step.step_number for r in resumed.execution_results] == [6, 7, 8, 9, 10]

    def test_skipped_step_blocks_dependents_only_by_input(self, config, pipeline):
        assert pipeline.run_pipeline(end_step=8, skip_steps=[5]) is False

        failed = pipeline.execution_results[-1]
        assert failed.step.step_number == 6
        assert failed.error_message == "Input file missing"

    def test_resume_after_failed_chunk_does_not_shrink_curriculum(self, config, logger, pipeline, file_manager):
        assert pipeline.run_pipeline(end_step=5) is True
        summary_path = config.artifact_path("chunks_processed")
        summary = file_manager.load_json(summary_path)
        failed = summary["chunks"][1]
        (Path(config.output_dir) / failed.pop("resultPath")).unlink()
        failed["status"] = "failed"
        file_manager.save_json(summary, summary_path)

        resumed = CurriculumPipeline(config, logger)

        assert resumed.run_pipeline(start_step=6) is False
        [result] = resumed.execution_results
        assert result.step.step_number == 6
        assert failed["chunkId"] in result.error_message
        assert not config.artifact_path("curriculum").exists()
