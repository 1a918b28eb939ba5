import uuid

from app.backend.models.db_models import AttendanceRecord, AttendanceStatus


def test_dashboard_for_a_day(api_client, auth_headers, mock_db_client, roster):
    mock_db_client.count_children.return_value = 3
    mock_db_client.get_attendance_by_date.return_value = [
        AttendanceRecord(id=uuid.uuid4(), kid_id=child.id, attendance_date="2024-01-05", status=status)
        for child, status in zip(roster, [AttendanceStatus.PRESENT, AttendanceStatus.ABSENT, AttendanceStatus.ABSENT])
    ]

    response = api_client.get("/api/v1/dashboard", params={"on": "2024-01-05"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "attendance_date": "2024-01-05",
        "total_children": 3,
        "present": 1,
        "absent": 2,
        "total": 3,
        "attendance_rate": 33,
    }


def test_dashboard_defaults_to_today(api_client, auth_headers, mock_db_client):
    mock_db_client.count_children.return_value = 0

    response = api_client.get("/api/v1/dashboard", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["attendance_rate"] is None
    mock_db_client.get_attendance_by_date.assert_called_once()


def test_dashboard_store_down(api_client, auth_headers, mock_db_client):
    mock_db_client.count_children.side_effect = OSError("connection refused")

    response = api_client.get("/api/v1/dashboard", headers=auth_headers)

    assert response.status_code == 503


def test_health(api_client):
    assert api_client.get("/health").json()["status"] == "ok"
