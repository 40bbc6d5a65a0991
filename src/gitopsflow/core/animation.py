import asyncio
import threading
import time
import sys
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")

SPINNER_CHARS = "|/-\\"


def _clear(text: str) -> None:
    sys.stderr.write("\r" + " " * (len(text) + 2) + "\r")
    sys.stderr.flush()


async def run(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    text: str = "Выполнение",
    interval: float = 0.1,
    **kwargs: Any,
) -> T:
    """
    Ждёт корутину func и крутит спиннер в stderr из отдельного потока.
    Результат (✅/❌) печатается одной строкой, исключение пробрасывается.
    """
    stop_event = threading.Event()

    def spinner():
        i = 0
        while not stop_event.is_set():
            frame = SPINNER_CHARS[i % len(SPINNER_CHARS)]
            sys.stderr.write(f"\r{text} {frame}")
            sys.stderr.flush()
            i += 1
            time.sleep(interval)
        _clear(text)

    thread = threading.Thread(target=spinner, daemon=True)
    thread.start()

    success = False
    try:
        result = await func(*args, **kwargs)
        success = True
        return result
    finally:
        stop_event.set()
        await asyncio.to_thread(thread.join)
        _clear(text)
        mark = "✅ Успешно" if success else "❌ Ошибка"
        sys.stderr.write(f"{text} - {mark}\n")
        sys.stderr.flush()
