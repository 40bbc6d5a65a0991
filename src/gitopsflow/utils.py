import functools
import asyncio
import json
from typing import IO, Any, Dict

import click


def async_click(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return asyncio.run(func(*args, **kwargs))
    return wrapper


def read_json(stream: IO[str]) -> Dict[str, Any]:
    """
    Читает JSON-объект из файла, ошибки превращает в ClickException.
    """
    try:
        data = json.load(stream)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{stream.name}: невалидный JSON ({e})")
    if not isinstance(data, dict):
        raise click.ClickException(f"{stream.name}: ожидался JSON-объект")
    return data
