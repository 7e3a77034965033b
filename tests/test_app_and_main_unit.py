from pathlib import Path

import main as entry
from accounts.storage import AccountStore
from ocr.recognizer import Recognizer
from solver.pipeline import SolvePipeline
from solver.service import SolveService
from tests.fakes import FakeEngine


def _patch_service(monkeypatch, engine_factory=FakeEngine) -> None:
    real_init = SolveService.__init__

    def _init(self, store, pipeline=None, **kwargs):
        pipeline = SolvePipeline(recognizer=Recognizer(engine_factory=engine_factory))
        real_init(self, store, pipeline=pipeline, **kwargs)

    monkeypatch.setattr(entry.SolveService, "__init__", _init)


def _image(tmp_path: Path) -> str:
    path = tmp_path / "photo.png"
    path.write_bytes(b"fake-png")
    return str(path)


def test_main_solves_and_reports(monkeypatch, tmp_path: Path, capsys) -> None:
    data_file = str(tmp_path / "accounts.json")
    AccountStore(data_file).register_account("Ada", "ada@example.com", "pw")
    _patch_service(monkeypatch)

    code = entry.main([_image(tmp_path), "--email", "ada@example.com", "--data-file", data_file])

    out = capsys.readouterr().out
    assert code == 0
    assert "Solution (x): 2" in out
    assert "Free solves remaining: 2" in out
    assert "100%" in out


def test_main_unknown_account(monkeypatch, tmp_path: Path, capsys) -> None:
    _patch_service(monkeypatch)
    code = entry.main([_image(tmp_path), "--email", "who@example.com",
                       "--data-file", str(tmp_path / "accounts.json")])
    assert code == 2
    assert "No account" in capsys.readouterr().out


def test_main_reports_pipeline_error(monkeypatch, tmp_path: Path, capsys) -> None:
    data_file = str(tmp_path / "accounts.json")
    AccountStore(data_file).register_account("Ada", "ada@example.com", "pw")
    _patch_service(monkeypatch, lambda: FakeEngine(text=""))

    code = entry.main([_image(tmp_path), "--email", "ada@example.com", "--data-file", data_file])

    assert code == 1
    assert "No text found" in capsys.readouterr().out
