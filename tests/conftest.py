from datetime import datetime

import pytest

from reflex_datatable.models import Column, ExportConfig


@pytest.fixture
def people():
    return [
        {"id": 1, "name": "Alice", "age": 34, "city": {"name": "Paris"}, "active": True},
        {"id": 2, "name": "Bob", "age": 27, "city": {"name": "Berlin"}, "active": False},
        {"id": 3, "name": "Carol", "age": 41, "city": {"name": "Boston"}, "active": True},
        {"id": 4, "name": "Dave", "age": None, "city": {"name": "Paris"}, "active": False},
        {"id": 5, "name": "Eve", "age": 27, "city": None, "active": True},
    ]


@pytest.fixture
def people_columns():
    return [
        Column(id="id", label="ID", hidden=True),
        Column(id="name", label="Name"),
        Column(id="age", label="Age", filter_type="number"),
        Column(id="city.name", label="City"),
    ]


@pytest.fixture
def numbered_rows():
    return [{"id": i, "value": f"row {i}"} for i in range(1, 26)]


@pytest.fixture
def fixed_config():
    return ExportConfig(filename="report", generated_at=datetime(2024, 3, 9, 14, 5, 7))
