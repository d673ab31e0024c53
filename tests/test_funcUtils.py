"""Tests for the small helpers in funcUtils."""

from datetime import datetime

import pytest

import funcUtils as fu
from err_utils import ValidationError


def test_new_handle():
    person = fu.new_handle('p')
    family = fu.new_handle('f', person)

    assert person.startswith('p-')
    assert family.startswith(f'f-{person}-')
    assert fu.new_handle('p') != fu.new_handle('p')


@pytest.mark.parametrize("value,expected", [
    (None, None), ('', None), ('   ', None), (' p-1 ', 'p-1'), ('p-1', 'p-1'),
])
def test_clean_handle(value, expected):
    assert fu.clean_handle(value) == expected


@pytest.mark.parametrize("value,expected", [
    (None, None), ('', None), (' 1985 ', 1985), (1985, 1985),
])
def test_parse_year(value, expected):
    assert fu.parse_year(value) == expected


@pytest.mark.parametrize("value", ['19x5', '1985.5', True])
def test_parse_year_rejects(value):
    with pytest.raises(ValidationError):
        fu.parse_year(value, 'birth_year')


def test_format_timestamp():
    assert fu.format_timestamp(None) == 'Never'
    assert fu.format_timestamp('2024-05-01T08:30:00') == '2024-05-01 08:30:00'
    assert fu.format_timestamp('2024-05-01 08:30:00.123') == '2024-05-01 08:30:00'
    assert fu.format_timestamp(datetime(2024, 5, 1, 8, 30)) == '2024-05-01 08:30:00'
    assert fu.format_timestamp('yesterday') == 'yesterday'


def test_get_function_name():
    def caller():
        return fu.get_function_name()

    assert caller() == 'caller'
