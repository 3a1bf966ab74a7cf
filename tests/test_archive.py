import zipfile
from datetime import date

import pytest

from wordpressify.tasks.archive import backup_name, zip_tree
from wordpressify.utils.diagnostics import MissingPrerequisiteError


def test_backup_name_uses_day_month_year():
    assert backup_name(date(2026, 3, 7)) == "07.03.2026.zip"


def test_zip_tree_stores_relative_paths(tmp_path):
    source = tmp_path / "dist" / "themes" / "wordpressify"
    (source / "js").mkdir(parents=True)
    (source / "style.css").write_text("body{}")
    (source / "js" / "footer-bundle.js").write_text("a();")
    archive = tmp_path / "dist" / "wordpressify.zip"

    assert zip_tree(source, archive) == archive

    with zipfile.ZipFile(archive) as zipped:
        assert sorted(zipped.namelist()) == ["js/footer-bundle.js", "style.css"]
        assert zipped.read("style.css") == b"body{}"


def test_zip_tree_missing_source_raises(tmp_path):
    with pytest.raises(MissingPrerequisiteError):
        zip_tree(tmp_path / "build", tmp_path / "backups" / "x.zip")

    assert not (tmp_path / "backups").exists()
