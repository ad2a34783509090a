import json

import pytest


@pytest.fixture(params=["json", "sqlite"])
def any_repo(request, tmp_path, db_module):
    if request.param == "json":
        repo = db_module.JsonScoreRepository(tmp_path / "scores.json")
    else:
        repo = db_module.SqliteScoreRepository(tmp_path / "scores.db")
    yield repo
    repo.close()


def _record(repo, player_id, variant="path_finder", score=100, session_id="s1"):
    return repo.record_score(
        player_id=player_id,
        session_id=session_id,
        variant=variant,
        level_key="level-1",
        metrics={"final_score": score, "moves": 4, "completed": True},
    )


def test_get_or_create_player_is_idempotent(any_repo):
    p1 = any_repo.get_or_create_player("neo")
    p2 = any_repo.get_or_create_player("neo")
    assert p1["id"] == p2["id"]
    assert any_repo.get_player(p1["id"])["handle"] == "neo"


def test_get_player_returns_none_for_unknown_id(any_repo):
    assert any_repo.get_player("nonexistent-id") is None


def test_record_score_round_trip(any_repo):
    player = any_repo.get_or_create_player("trinity")
    saved = _record(any_repo, player["id"], score=1800)

    assert saved["variant"] == "path_finder"
    assert saved["session_id"] == "s1"
    assert saved["metrics"] == {"final_score": 1800, "moves": 4, "completed": True}

    listed = any_repo.list_scores()
    assert len(listed) == 1
    assert listed[0]["id"] == saved["id"]
    assert listed[0]["metrics"]["final_score"] == 1800


def test_list_scores_filters_and_keeps_insertion_order(any_repo):
    neo = any_repo.get_or_create_player("neo")["id"]
    trinity = any_repo.get_or_create_player("trinity")["id"]
    _record(any_repo, neo, "path_finder", 300, "a")
    _record(any_repo, trinity, "key_finder", 900, "b")
    _record(any_repo, neo, "key_finder", 500, "c")

    assert [s["session_id"] for s in any_repo.list_scores()] == ["a", "b", "c"]
    assert [s["session_id"] for s in any_repo.list_scores(variant="key_finder")] == ["b", "c"]
    assert [s["session_id"] for s in any_repo.list_scores(player_id=neo)] == ["a", "c"]
    assert [s["session_id"] for s in any_repo.list_scores(variant="key_finder", player_id=neo)] == ["c"]


def test_scores_without_a_player_are_accepted(any_repo):
    _record(any_repo, None)
    assert any_repo.list_scores()[0]["player_id"] is None


def test_json_store_is_written_atomically(repo, repo_path):
    player = repo.get_or_create_player("neo")
    _record(repo, player["id"])

    doc = json.loads(repo_path.read_text(encoding="utf-8"))
    assert doc["schema_version"] == 1
    assert player["id"] in doc["players"]
    assert len(doc["scores"]) == 1
    assert not repo_path.with_suffix(".json.tmp").exists()


def test_json_store_tolerates_an_empty_file(db_module, repo_path):
    repo_path.write_text("", encoding="utf-8")
    repo = db_module.JsonScoreRepository(repo_path)
    assert repo.list_scores() == []
