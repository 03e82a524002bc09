from unittest.mock import MagicMock

import pytest

from src.center_attendance.center_attendance.users.mysql_user_repository import MySQLStudentRepository


def make_repo(cursor):
    conn = MagicMock()
    conn.cursor.return_value = cursor
    factory = MagicMock()
    factory.connect.return_value = conn
    return MySQLStudentRepository(factory), factory, conn


def test_delete_with_user_runs_both_deletes_in_one_transaction():
    cursor = MagicMock()
    cursor.fetchone.return_value = {"user_id": 11}
    repo, factory, conn = make_repo(cursor)

    assert repo.delete_with_user(5) is True

    statements = [c.args[0] for c in cursor.execute.call_args_list]
    assert statements[1] == "DELETE FROM students WHERE student_id=%s"
    assert statements[2].startswith("DELETE FROM users WHERE user_id=%s")
    assert cursor.execute.call_args_list[2].args[1] == (11, "student")
    assert factory.connect.call_count == 1
    conn.commit.assert_called_once()


def test_delete_with_user_rolls_back_when_user_delete_fails():
    cursor = MagicMock()
    cursor.fetchone.return_value = {"user_id": 11}
    cursor.execute.side_effect = [None, None, RuntimeError("connection lost")]
    repo, _, conn = make_repo(cursor)

    with pytest.raises(RuntimeError):
        repo.delete_with_user(5)

    conn.commit.assert_not_called()
    conn.rollback.assert_called_once()


def test_delete_with_user_missing_student():
    cursor = MagicMock()
    cursor.fetchone.return_value = None
    repo, _, conn = make_repo(cursor)

    assert repo.delete_with_user(5) is False
    assert cursor.execute.call_count == 1
