import importlib
import io
import zipfile

import openpyxl
import pytest

import database


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAIL", "admin@test.local")
    monkeypatch.setenv("ADMIN_PASSWORD", "secret123")
    path = str(tmp_path / "results.db")
    monkeypatch.setattr(database, "DATABASE_PATH", path)
    database.init_db()
    return path


@pytest.fixture
def count_rows(db_path):
    def _count(table):
        conn = database.get_db_connection()
        count = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        conn.close()
        return count

    return _count


@pytest.fixture
def make_sheet():
    def _make(rows):
        wb = openpyxl.Workbook()
        ws = wb.active
        for row in rows:
            ws.append(row)
        stream = io.BytesIO()
        wb.save(stream)
        stream.seek(0)
        return stream

    return _make


@pytest.fixture
def truncate_worksheet():
    """Copy of an xlsx stream whose first worksheet XML is cut off halfway."""
    def _truncate(stream):
        source = zipfile.ZipFile(stream)
        out = io.BytesIO()
        with zipfile.ZipFile(out, "w") as target:
            for item in source.infolist():
                data = source.read(item.filename)
                if item.filename == "xl/worksheets/sheet1.xml":
                    data = data[: len(data) // 2]
                target.writestr(item, data)
        out.seek(0)
        return out

    return _truncate


@pytest.fixture
def app_module(db_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "x" * 40)
    monkeypatch.setenv("ACADEMIC_YEAR", "2025-26")

    import app

    mod = importlib.reload(app)
    mod.app.config["TESTING"] = True
    return mod


@pytest.fixture
def client(app_module):
    return app_module.app.test_client()
