#!/usr/bin/env python3
"""Shared fixtures: a small cooperative data file dated around today."""

from datetime import datetime, timedelta

import pytest
import yaml


def sample_data():
    """
    One overdue tractor (t1), one idle tractor (t2), one implement.

    t1 has fuelings at 50, 80 and 120 this month, one closed order for
    25h / 2500 and a 30 expense, so its ledger is 25h, 2500 revenue,
    150 expenses, 6 per hour and 2350 balance.
    """
    now = datetime.now()
    month_start = datetime(now.year, now.month, 1, 6).isoformat()
    return {
        "settings": {"associationName": "Cooperativa Teste"},
        "roles": [
            {"id": "r-admin", "name": "Admin"},
            {
                "id": "r-operator",
                "name": "Operator",
                "permissions": {
                    "dashboard": {"view": True},
                    "services": {"view": True, "create": True, "edit": True},
                    "fueling": {"view": True},
                },
            },
        ],
        "users": [
            {"id": "u1", "fullName": "Maria Souza", "username": "maria",
             "roleId": "r-admin", "status": "approved"},
            {"id": "u2", "fullName": "Joao Pereira", "username": "joao",
             "roleId": "r-operator", "status": "approved"},
            {"id": "u3", "fullName": "Ana Costa", "username": "ana",
             "roleId": "r-admin", "status": "pending"},
        ],
        "producers": [{"id": "p1", "fullName": "Antonio Lima"}],
        "tractors": [
            {"id": "t1", "name": "Massey Ferguson", "hourlyRate": 100,
             "maintenanceIntervalHours": 100, "lastMaintenanceHorimeter": 0},
            {"id": "t2", "name": "Valtra", "hourlyRate": 150},
        ],
        "implements": [{"id": "i1", "name": "Grade", "dailyRate": 80}],
        "serviceOrders": [
            {"id": "o1", "orderNumber": 1, "producerId": "p1", "tractorId": "t1",
             "status": "closed", "initialHorimeter": 10, "finalHorimeter": 35,
             "createdAt": month_start, "closedAt": month_start, "totalCost": 2500},
            {"id": "o2", "orderNumber": 2, "producerId": "p1", "implementId": "i1",
             "status": "open", "createdAt": month_start},
        ],
        "fuelings": [
            {"id": "f1", "tractorId": "t1", "horimeter": 50, "liters": 10,
             "cost": 40, "date": month_start},
            {"id": "f2", "tractorId": "t1", "horimeter": 80, "liters": 8,
             "cost": 32, "date": month_start},
            {"id": "f3", "tractorId": "t1", "horimeter": 120, "liters": 12,
             "cost": 48, "date": month_start},
        ],
        "expenses": [
            {"id": "e1", "tractorId": "t1", "description": "Filter", "cost": 30,
             "type": "Filter", "date": month_start},
        ],
        "maintenanceHistory": [],
        "schedules": [
            {"id": "s1", "equipment_id": "t2", "equipment_type": "tractor",
             "producer_id": "p1",
             "start_time": (now + timedelta(days=2)).isoformat(timespec="seconds")},
        ],
        "logs": [],
    }


@pytest.fixture
def data_file(tmp_path):
    path = tmp_path / "coop.yaml"
    with open(path, "w") as fp:
        yaml.dump(sample_data(), fp, sort_keys=False)
    return path
